# Accounts
from lensmanager.models.users.user_models import User
from lensmanager.models.clients.client_models import Client

# Bookings
from lensmanager.models.bookings.booking_models import Booking

# Billing
from lensmanager.models.billing.invoice_models import Invoice
from lensmanager.models.billing.payment_schedule_models import PaymentSchedule, PaymentInstallment

# Support
from lensmanager.models.support.activity_models import UserActivity
