from enum import Enum

class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    cancel_by_client = "cancel_by_client"


CANCELLED_BOOKING_STATUSES = frozenset(
    {BookingStatus.cancelled, BookingStatus.cancel_by_client}
)
