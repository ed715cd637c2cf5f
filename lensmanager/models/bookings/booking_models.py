from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship

from lensmanager.core.db import Base
from lensmanager.models.base.mixins import TimestampMixin, OwnedMixin
from lensmanager.models.enums.booking_status import BookingStatus


class Booking(Base, TimestampMixin, OwnedMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    location = Column(String(255), nullable=False, default="")
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)

    package_type = Column(String(100), nullable=True)
    package_name = Column(String(255), nullable=True)
    pre_shoot = Column(Boolean, nullable=False, default=False)
    album = Column(Boolean, nullable=False, default=False)

    total_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    paid_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    deposit_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    deposit_paid = Column(Boolean, nullable=False, default=False)

    status = Column(Enum(BookingStatus, name="booking_status"), nullable=False, default=BookingStatus.pending, index=True)

    special_requirements = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Wedding package details
    wedding_hotel_name = Column(String(255), nullable=True)
    wedding_date = Column(Date, nullable=True)
    homecoming_hotel_name = Column(String(255), nullable=True)
    homecoming_date = Column(Date, nullable=True)
    wedding_album = Column(Boolean, nullable=False, default=False)
    pre_shoot_album = Column(Boolean, nullable=False, default=False)
    family_album = Column(Boolean, nullable=False, default=False)
    group_photo_size = Column(String(50), nullable=True)
    homecoming_photo_size = Column(String(50), nullable=True)
    wedding_photo_sizes = Column(String(255), nullable=True)
    extra_thank_you_cards_qty = Column(Integer, nullable=False, default=0)

    # Client confirmation link
    confirmation_token = Column(String(128), nullable=True, unique=True, index=True)
    confirmation_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client", lazy="selectin")

    __table_args__ = (
        Index("ix_booking_user_status", "user_id", "status"),
        CheckConstraint("total_amount >= 0 AND paid_amount >= 0 AND deposit_amount >= 0", name="ck_booking_amounts_non_negative"),
        CheckConstraint("deposit_amount <= total_amount", name="ck_booking_deposit_within_total"),
    )

    def __repr__(self):
        return f"<Booking id={self.id} status={self.status} user_id={self.user_id}>"
