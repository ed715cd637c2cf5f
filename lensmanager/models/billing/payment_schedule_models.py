from sqlalchemy import Column, Integer, Numeric, String, Text, Date, DateTime, ForeignKey, Enum, Index, CheckConstraint
from sqlalchemy.sql import func
from decimal import Decimal
from lensmanager.core.db import Base
from lensmanager.models.base.mixins import TimestampMixin, OwnedMixin
from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus, PaymentScheduleType


class PaymentSchedule(Base, TimestampMixin, OwnedMixin):
    __tablename__ = "payment_schedules"

    id = Column(Integer, primary_key=True)

    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)

    payment_name = Column(String(150), nullable=False)
    schedule_type = Column(Enum(PaymentScheduleType, name="payment_schedule_type"), nullable=False, default=PaymentScheduleType.custom)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status = Column(Enum(PaymentScheduleStatus, name="payment_schedule_status"), nullable=False, default=PaymentScheduleStatus.pending, index=True)

    payment_date = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_payment_schedule_invoice_status", "invoice_id", "status"),
        CheckConstraint("amount >= 0 AND paid_amount >= 0", name="ck_payment_schedule_amounts_non_negative"),
    )

    def __repr__(self):
        return f"<PaymentSchedule id={self.id} type={self.schedule_type} amount={self.amount} status={self.status}>"


class PaymentInstallment(Base, OwnedMixin):
    """A payment received against one schedule line. Append-only."""

    __tablename__ = "payment_installments"

    id = Column(Integer, primary_key=True)
    payment_schedule_id = Column(Integer, ForeignKey("payment_schedules.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(14, 2), nullable=False)
    paid_date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("amount > 0", name="ck_payment_installment_amount_positive"),)

    def __repr__(self):
        return f"<PaymentInstallment id={self.id} amount={self.amount}>"
