from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime, date
from enum import Enum

from lensmanager.models.enums.invoice_status import InvoiceStatus
from lensmanager.schemas.billing.payment_schedule_schemas import PaymentScheduleOut


# =====================================================
# BASE
# =====================================================
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =====================================================
# CREATE / UPDATE
# =====================================================
class InvoiceCreate(BaseModel):
    client_id: int
    booking_id: Optional[int] = None
    invoice_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Decimal = Field(ge=0)
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    status: InvoiceStatus = InvoiceStatus.draft
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    client_id: Optional[int] = None
    booking_id: Optional[int] = None
    invoice_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    tax_amount: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    payment_date: Optional[date] = None

    @model_validator(mode="after")
    def not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


# =====================================================
# OUTPUT
# =====================================================
class InvoiceOut(ORMBase):
    id: int
    invoice_number: str
    client_id: int
    booking_id: Optional[int]
    status: InvoiceStatus

    issue_date: date
    due_date: date
    payment_date: Optional[date]

    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    deposit_amount: Decimal

    notes: Optional[str]

    created_at: datetime
    updated_at: Optional[datetime]


class InvoiceDetailOut(InvoiceOut):
    payment_schedules: List[PaymentScheduleOut] = []


class InvoiceListItem(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    client_name: str
    booking_id: Optional[int]
    total_amount: Decimal
    deposit_amount: Decimal
    due_date: date
    status: InvoiceStatus


class InvoiceListData(BaseModel):
    total: int
    items: List[InvoiceListItem]


# =====================================================
# UPDATE OUTCOME
# =====================================================
class ScheduleAction(str, Enum):
    regenerated = "regenerated"
    cancelled = "cancelled"
    failed = "failed"
    not_applicable = "not_applicable"


class ScheduleOutcome(BaseModel):
    action: ScheduleAction = ScheduleAction.not_applicable
    lines: int = 0
    message: Optional[str] = None


class InvoiceUpdateResult(BaseModel):
    invoice: InvoiceOut
    old_status: InvoiceStatus
    new_status: InvoiceStatus
    schedule_outcome: ScheduleOutcome = Field(default_factory=ScheduleOutcome)


class InvoiceSendResult(BaseModel):
    invoice: InvoiceOut
    recipient: str
    notification_status: str
