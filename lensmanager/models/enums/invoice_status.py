from enum import Enum

class InvoiceStatus(str, Enum):
    draft = "draft"
    pending = "pending"
    sent = "sent"
    paid = "paid"
    cancelled = "cancelled"
    cancel_by_client = "cancel_by_client"


CANCELLED_INVOICE_STATUSES = frozenset(
    {InvoiceStatus.cancelled, InvoiceStatus.cancel_by_client}
)
