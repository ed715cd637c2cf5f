from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey, Numeric, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from decimal import Decimal
from lensmanager.core.db import Base
from lensmanager.models.base.mixins import TimestampMixin, OwnedMixin
from lensmanager.models.enums.invoice_status import InvoiceStatus


class Invoice(Base, TimestampMixin, OwnedMixin):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, unique=True, index=True)
    status = Column(Enum(InvoiceStatus, name="invoice_status"), nullable=False, default=InvoiceStatus.draft, index=True)

    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=True)

    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    deposit_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    notes = Column(Text, nullable=True)

    client = relationship("Client", lazy="selectin")

    __table_args__ = (
        Index("ix_invoice_user_status", "user_id", "status"),
        CheckConstraint("subtotal >= 0 AND tax_amount >= 0 AND total_amount >= 0", name="ck_invoice_amounts_non_negative"),
        CheckConstraint("deposit_amount >= 0 AND deposit_amount <= total_amount", name="ck_invoice_deposit_within_total"),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} status={self.status}>"
