# lensmanager/models/enums/payment_schedule_status.py
import enum

class PaymentScheduleStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


class PaymentScheduleType(str, enum.Enum):
    deposit = "deposit"
    final = "final"
    milestone = "milestone"
    custom = "custom"
