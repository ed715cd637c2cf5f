from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime, date

from lensmanager.models.enums.payment_schedule_status import (
    PaymentScheduleStatus,
    PaymentScheduleType,
)


class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PaymentScheduleOut(ORMBase):
    id: int
    invoice_id: Optional[int]
    booking_id: Optional[int]
    payment_name: str
    schedule_type: PaymentScheduleType
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    status: PaymentScheduleStatus
    payment_date: Optional[date]
    payment_method: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]


class PaymentScheduleListData(BaseModel):
    total: int
    items: List[PaymentScheduleOut]


class PaymentInstallmentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    paid_date: Optional[date] = None
    payment_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None


class PaymentInstallmentOut(ORMBase):
    id: int
    payment_schedule_id: int
    amount: Decimal
    paid_date: date
    payment_method: Optional[str]
    notes: Optional[str]
    created_at: datetime


class InstallmentRecordResult(BaseModel):
    schedule: PaymentScheduleOut
    installment: PaymentInstallmentOut


class PaymentInstallmentListData(BaseModel):
    total: int
    items: List[PaymentInstallmentOut]


# =====================================================
# MANUAL LINES
# =====================================================
class PaymentScheduleCreate(BaseModel):
    invoice_id: Optional[int] = None
    booking_id: Optional[int] = None
    payment_name: str = Field(min_length=1, max_length=150)
    schedule_type: PaymentScheduleType = PaymentScheduleType.custom
    due_date: date
    amount: Decimal = Field(gt=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def has_parent(self):
        if self.invoice_id is None and self.booking_id is None:
            raise ValueError("invoice_id or booking_id is required")
        return self


class PaymentScheduleUpdate(BaseModel):
    payment_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    schedule_type: Optional[PaymentScheduleType] = None
    due_date: Optional[date] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self
