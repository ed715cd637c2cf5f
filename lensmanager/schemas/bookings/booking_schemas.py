from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime, date, time
from enum import Enum

from lensmanager.models.enums.booking_status import BookingStatus


# =====================================================
# BASE
# =====================================================
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class BookingDetails(BaseModel):
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    package_type: Optional[str] = None
    package_name: Optional[str] = None
    pre_shoot: Optional[bool] = None
    album: Optional[bool] = None

    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    paid_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_paid: Optional[bool] = None

    special_requirements: Optional[str] = None
    notes: Optional[str] = None

    wedding_hotel_name: Optional[str] = None
    wedding_date: Optional[date] = None
    homecoming_hotel_name: Optional[str] = None
    homecoming_date: Optional[date] = None
    wedding_album: Optional[bool] = None
    pre_shoot_album: Optional[bool] = None
    family_album: Optional[bool] = None
    group_photo_size: Optional[str] = None
    homecoming_photo_size: Optional[str] = None
    wedding_photo_sizes: Optional[str] = None
    extra_thank_you_cards_qty: Optional[int] = Field(default=None, ge=0)


# =====================================================
# CREATE / UPDATE
# =====================================================
class BookingCreate(BookingDetails):
    client_id: int
    booking_date: date
    total_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    deposit_amount: Decimal = Field(default=Decimal("0.00"), ge=0)

    @model_validator(mode="after")
    def deposit_within_total(self):
        if self.deposit_amount > self.total_amount:
            raise ValueError("deposit_amount cannot exceed total_amount")
        return self


class BookingUpdate(BookingDetails):
    client_id: Optional[int] = None
    status: Optional[BookingStatus] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


# =====================================================
# OUTPUT
# =====================================================
class BookingOut(ORMBase):
    id: int
    client_id: int
    booking_date: date
    start_time: Optional[time]
    end_time: Optional[time]
    location: str
    title: str
    description: Optional[str]

    package_type: Optional[str]
    package_name: Optional[str]
    pre_shoot: bool
    album: bool

    total_amount: Decimal
    paid_amount: Decimal
    deposit_amount: Decimal
    deposit_paid: bool
    status: BookingStatus

    special_requirements: Optional[str]
    notes: Optional[str]

    wedding_hotel_name: Optional[str]
    wedding_date: Optional[date]
    homecoming_hotel_name: Optional[str]
    homecoming_date: Optional[date]
    wedding_album: bool
    pre_shoot_album: bool
    family_album: bool
    group_photo_size: Optional[str]
    homecoming_photo_size: Optional[str]
    wedding_photo_sizes: Optional[str]
    extra_thank_you_cards_qty: int

    confirmation_token_expires_at: Optional[datetime]

    created_at: datetime
    updated_at: Optional[datetime]


class BookingListData(BaseModel):
    total: int
    items: List[BookingOut]


# =====================================================
# STATUS TRANSITION OUTCOME
# =====================================================
class InvoiceCreationStatus(str, Enum):
    created = "created"
    skipped = "skipped"
    failed = "failed"
    not_applicable = "not_applicable"


class InvoiceCreationOutcome(BaseModel):
    status: InvoiceCreationStatus = InvoiceCreationStatus.not_applicable
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    message: Optional[str] = None


class CascadeOutcome(BaseModel):
    applied: bool = False
    invoices_cancelled: int = 0
    schedules_cancelled: int = 0
    failed: bool = False
    message: Optional[str] = None


class BookingStatusResult(BaseModel):
    booking: BookingOut
    old_status: BookingStatus
    new_status: BookingStatus
    invoice: InvoiceCreationOutcome = Field(default_factory=InvoiceCreationOutcome)
    cascade: CascadeOutcome = Field(default_factory=CascadeOutcome)

    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    invoice_message: Optional[str] = None
    invoice_warning: Optional[str] = None


# =====================================================
# CLIENT CONFIRMATION
# =====================================================
class ConfirmationRequestOut(BaseModel):
    booking_id: int
    expires_at: datetime
    confirmation_url: str
    notification_status: str


class BookingConfirmationOut(BaseModel):
    booking_id: int
    already_confirmed: bool
    status: BookingStatus
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    invoice_warning: Optional[str] = None
