# lensmanager/routers/__init__.py

from .clients.client_router import router as client_router

from .bookings.booking_router import router as booking_router
from .bookings.confirmation_router import router as confirmation_router

from .billing.invoice_router import router as invoice_router
from .billing.payment_schedule_router import router as payment_schedule_router


__all__ = [
"client_router",

"booking_router",
"confirmation_router",

"invoice_router",
"payment_schedule_router",
]
