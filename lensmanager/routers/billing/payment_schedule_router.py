from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.core.db import get_db
from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus
from lensmanager.utils.get_user import get_current_user
from lensmanager.utils.response import success_response, APIResponse

from lensmanager.services.billing.payment_schedule_service import (
    create_payment_schedule,
    get_payment_schedule,
    list_payment_schedules,
    update_payment_schedule,
    delete_payment_schedule,
    list_all_installments,
    list_installments,
    record_installment,
)

from lensmanager.schemas.billing.payment_schedule_schemas import (
    PaymentScheduleCreate,
    PaymentScheduleUpdate,
    PaymentScheduleOut,
    PaymentScheduleListData,
    PaymentInstallmentCreate,
    PaymentInstallmentOut,
    PaymentInstallmentListData,
    InstallmentRecordResult,
)

router = APIRouter(
    prefix="/payment-schedules",
    tags=["Payment Schedules"],
)


# =====================================================
# LIST PAYMENT SCHEDULES
# =====================================================
@router.get(
    "",
    response_model=APIResponse[PaymentScheduleListData],
)
async def list_payment_schedules_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),

    invoice_id: int | None = Query(None),
    booking_id: int | None = Query(None),
    status: PaymentScheduleStatus | None = Query(None),

    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    sort_by: str = Query("due_date"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
):
    data = await list_payment_schedules(
        db,
        user,
        invoice_id=invoice_id,
        booking_id=booking_id,
        status=status,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response("Payment schedules retrieved successfully", data)


# =====================================================
# CREATE PAYMENT SCHEDULE LINE
# =====================================================
@router.post(
    "",
    response_model=APIResponse[PaymentScheduleOut],
    status_code=201,
)
async def create_payment_schedule_api(
    payload: PaymentScheduleCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    schedule = await create_payment_schedule(db, payload, user)
    return success_response("Payment schedule created successfully", schedule)


# =====================================================
# ALL INSTALLMENTS
# =====================================================
# declared before /{schedule_id} so the path is not read as an id
@router.get(
    "/installments",
    response_model=APIResponse[PaymentInstallmentListData],
)
async def list_all_installments_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    data = await list_all_installments(db, user, page=page, page_size=page_size)
    return success_response("Installments retrieved successfully", data)


# =====================================================
# GET PAYMENT SCHEDULE BY ID
# =====================================================
@router.get(
    "/{schedule_id}",
    response_model=APIResponse[PaymentScheduleOut],
)
async def get_payment_schedule_api(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    schedule = await get_payment_schedule(db, schedule_id, user)
    return success_response("Payment schedule retrieved successfully", schedule)


# =====================================================
# UPDATE / DELETE
# =====================================================
@router.put(
    "/{schedule_id}",
    response_model=APIResponse[PaymentScheduleOut],
)
async def update_payment_schedule_api(
    schedule_id: int,
    payload: PaymentScheduleUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    schedule = await update_payment_schedule(db, schedule_id, payload, user)
    return success_response("Payment schedule updated successfully", schedule)


@router.delete(
    "/{schedule_id}",
    response_model=APIResponse[None],
)
async def delete_payment_schedule_api(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await delete_payment_schedule(db, schedule_id, user)
    return success_response("Payment schedule deleted successfully")


# =====================================================
# INSTALLMENTS
# =====================================================
@router.get(
    "/{schedule_id}/installments",
    response_model=APIResponse[List[PaymentInstallmentOut]],
)
async def list_installments_api(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    installments = await list_installments(db, schedule_id, user)
    return success_response("Installments retrieved successfully", installments)


@router.post(
    "/{schedule_id}/installments",
    response_model=APIResponse[InstallmentRecordResult],
    status_code=201,
)
async def record_installment_api(
    schedule_id: int,
    payload: PaymentInstallmentCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await record_installment(db, schedule_id, payload, user)
    return success_response("Installment recorded successfully", result)
