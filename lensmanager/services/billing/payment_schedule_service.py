import logging
from datetime import date, timedelta

from sqlalchemy import select, func, update, delete, asc, desc, case
from sqlalchemy.orm import noload
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.models.billing.invoice_models import Invoice
from lensmanager.models.billing.payment_schedule_models import PaymentSchedule, PaymentInstallment
from lensmanager.models.bookings.booking_models import Booking
from lensmanager.models.enums.booking_status import CANCELLED_BOOKING_STATUSES
from lensmanager.models.enums.invoice_status import CANCELLED_INVOICE_STATUSES
from lensmanager.models.enums.payment_schedule_status import (
    PaymentScheduleStatus,
    PaymentScheduleType,
)

from lensmanager.schemas.billing.payment_schedule_schemas import (
    PaymentScheduleOut,
    PaymentScheduleListData,
    PaymentScheduleCreate,
    PaymentScheduleUpdate,
    PaymentInstallmentCreate,
    PaymentInstallmentOut,
    PaymentInstallmentListData,
    InstallmentRecordResult,
)

from lensmanager.core.config import FINAL_PAYMENT_DUE_DAYS
from lensmanager.core.exceptions import AppException
from lensmanager.constants.error_codes import ErrorCode
from lensmanager.constants.activity_codes import ActivityCode
from lensmanager.utils.activity_helpers import emit_activity, describe_changes
from lensmanager.utils.decimal_utils import ZERO, split_deposit, to_decimal

logger = logging.getLogger(__name__)

DEPOSIT_LINE_NAME = "Deposit Payment"
FINAL_LINE_NAME = "Final Payment"


# =====================================================
# GENERATOR
# =====================================================
async def generate_payment_schedule(
    db: AsyncSession,
    *,
    invoice_id: int,
    booking_id: int | None,
    user_id: int,
    total_amount,
    deposit_amount,
) -> list[PaymentSchedule]:
    """
    Replace the schedule lines of an invoice with a deposit line and a
    final line derived from its totals.

    Existing lines are deleted whatever their status. A zero deposit
    yields only the final line, a fully deposited total yields only the
    deposit line, and a zero total yields nothing. Errors propagate; the
    caller decides whether they are fatal.
    """
    deposit, remaining = split_deposit(total_amount, deposit_amount)
    today = date.today()

    await db.execute(
        delete(PaymentSchedule).where(
            PaymentSchedule.invoice_id == invoice_id,
            PaymentSchedule.user_id == user_id,
        )
    )

    lines: list[PaymentSchedule] = []

    if deposit > ZERO:
        lines.append(
            PaymentSchedule(
                user_id=user_id,
                invoice_id=invoice_id,
                booking_id=booking_id,
                payment_name=DEPOSIT_LINE_NAME,
                schedule_type=PaymentScheduleType.deposit,
                due_date=today,
                amount=deposit,
                paid_amount=ZERO,
                status=PaymentScheduleStatus.pending,
            )
        )

    if remaining > ZERO:
        lines.append(
            PaymentSchedule(
                user_id=user_id,
                invoice_id=invoice_id,
                booking_id=booking_id,
                payment_name=FINAL_LINE_NAME,
                schedule_type=PaymentScheduleType.final,
                due_date=today + timedelta(days=FINAL_PAYMENT_DUE_DAYS),
                amount=remaining,
                paid_amount=ZERO,
                status=PaymentScheduleStatus.pending,
            )
        )

    db.add_all(lines)
    await db.flush()

    logger.info(
        "Payment schedule generated",
        extra={
            "invoice_id": invoice_id,
            "deposit": str(deposit),
            "remaining": str(remaining),
            "lines": len(lines),
        },
    )
    return lines


# =====================================================
# CANCELLATION
# =====================================================
async def cancel_invoice_payment_schedules(
    db: AsyncSession,
    *,
    invoice_ids: list[int],
    user_id: int,
) -> int:
    """Cancel every open line of the given invoices. Completed lines stay."""
    if not invoice_ids:
        return 0

    result = await db.execute(
        update(PaymentSchedule)
        .where(
            PaymentSchedule.invoice_id.in_(invoice_ids),
            PaymentSchedule.user_id == user_id,
            PaymentSchedule.status == PaymentScheduleStatus.pending,
        )
        .values(status=PaymentScheduleStatus.cancelled)
    )
    return result.rowcount or 0


async def cancel_booking_direct_schedules(
    db: AsyncSession,
    *,
    booking_id: int,
    user_id: int,
) -> int:
    """Cancel open lines attached to the booking without an invoice."""
    result = await db.execute(
        update(PaymentSchedule)
        .where(
            PaymentSchedule.booking_id == booking_id,
            PaymentSchedule.invoice_id.is_(None),
            PaymentSchedule.user_id == user_id,
            PaymentSchedule.status == PaymentScheduleStatus.pending,
        )
        .values(status=PaymentScheduleStatus.cancelled)
    )
    return result.rowcount or 0


# =====================================================
# READ
# =====================================================
async def _get_schedule(
    db: AsyncSession,
    schedule_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> PaymentSchedule:
    stmt = select(PaymentSchedule).where(
        PaymentSchedule.id == schedule_id,
        PaymentSchedule.user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()

    schedule = (await db.execute(stmt)).scalar_one_or_none()
    if not schedule:
        raise AppException(
            404,
            "Payment schedule not found",
            ErrorCode.PAYMENT_SCHEDULE_NOT_FOUND,
        )
    return schedule


async def get_payment_schedule(db: AsyncSession, schedule_id: int, user) -> PaymentScheduleOut:
    schedule = await _get_schedule(db, schedule_id, user.id)
    return PaymentScheduleOut.model_validate(schedule)


async def list_payment_schedules(
    db: AsyncSession,
    user,
    *,
    invoice_id: int | None = None,
    booking_id: int | None = None,
    status: PaymentScheduleStatus | None = None,
    page: int = 1,
    page_size: int = 50,
    sort_by: str = "due_date",
    order: str = "asc",
) -> PaymentScheduleListData:
    logger.info(
        "List payment schedules",
        extra={
            "user_id": user.id,
            "invoice_id": invoice_id,
            "booking_id": booking_id,
            "status": status,
        },
    )

    base_query = select(PaymentSchedule).where(PaymentSchedule.user_id == user.id)

    if invoice_id:
        base_query = base_query.where(PaymentSchedule.invoice_id == invoice_id)

    if booking_id:
        base_query = base_query.where(PaymentSchedule.booking_id == booking_id)

    if status:
        base_query = base_query.where(PaymentSchedule.status == status)

    total = await db.scalar(
        select(func.count()).select_from(base_query.subquery())
    )

    sort_map = {
        "due_date": PaymentSchedule.due_date,
        "amount": PaymentSchedule.amount,
        "created_at": PaymentSchedule.created_at,
    }
    sort_col = sort_map.get(sort_by, PaymentSchedule.due_date)

    result = await db.execute(
        base_query
        .order_by(asc(sort_col) if order == "asc" else desc(sort_col), PaymentSchedule.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return PaymentScheduleListData(
        total=total or 0,
        items=[PaymentScheduleOut.model_validate(s) for s in result.scalars().all()],
    )


async def list_installments(db: AsyncSession, schedule_id: int, user) -> list[PaymentInstallmentOut]:
    await _get_schedule(db, schedule_id, user.id)

    result = await db.execute(
        select(PaymentInstallment)
        .where(
            PaymentInstallment.payment_schedule_id == schedule_id,
            PaymentInstallment.user_id == user.id,
        )
        .order_by(PaymentInstallment.paid_date, PaymentInstallment.id)
    )
    return [PaymentInstallmentOut.model_validate(i) for i in result.scalars().all()]


# =====================================================
# INSTALLMENTS
# =====================================================
async def record_installment(
    db: AsyncSession,
    schedule_id: int,
    payload: PaymentInstallmentCreate,
    user,
) -> InstallmentRecordResult:
    schedule = await _get_schedule(db, schedule_id, user.id, for_update=True)

    if schedule.status == PaymentScheduleStatus.cancelled:
        raise AppException(
            400,
            "Cannot record a payment against a cancelled schedule line",
            ErrorCode.PAYMENT_SCHEDULE_INVALID_STATE,
        )

    amount = to_decimal(payload.amount)
    paid_date = payload.paid_date or date.today()

    installment = PaymentInstallment(
        user_id=user.id,
        payment_schedule_id=schedule.id,
        amount=amount,
        paid_date=paid_date,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    db.add(installment)
    await db.flush()

    total_paid = await db.scalar(
        select(func.coalesce(func.sum(PaymentInstallment.amount), 0)).where(
            PaymentInstallment.payment_schedule_id == schedule.id
        )
    )
    schedule.paid_amount = to_decimal(total_paid)
    schedule.payment_date = paid_date
    if payload.payment_method:
        schedule.payment_method = payload.payment_method
    if schedule.paid_amount >= to_decimal(schedule.amount):
        schedule.status = PaymentScheduleStatus.completed

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.RECORD_INSTALLMENT,
        actor_email=user.email,
        amount=amount,
        target_name=f"{schedule.payment_name} #{schedule.id}",
    )

    await db.commit()
    await db.refresh(schedule)
    await db.refresh(installment)

    logger.info(
        "Installment recorded",
        extra={
            "schedule_id": schedule.id,
            "amount": str(amount),
            "paid_amount": str(schedule.paid_amount),
            "status": schedule.status,
        },
    )

    return InstallmentRecordResult(
        schedule=PaymentScheduleOut.model_validate(schedule),
        installment=PaymentInstallmentOut.model_validate(installment),
    )


async def list_all_installments(
    db: AsyncSession,
    user,
    *,
    page: int = 1,
    page_size: int = 50,
) -> PaymentInstallmentListData:
    base_query = select(PaymentInstallment).where(PaymentInstallment.user_id == user.id)

    total = await db.scalar(
        select(func.count()).select_from(base_query.subquery())
    )

    result = await db.execute(
        base_query
        .order_by(desc(PaymentInstallment.paid_date), desc(PaymentInstallment.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return PaymentInstallmentListData(
        total=total or 0,
        items=[PaymentInstallmentOut.model_validate(i) for i in result.scalars().all()],
    )


# =====================================================
# TOTALS
# =====================================================
async def invoice_schedule_totals(
    db: AsyncSession,
    *,
    invoice_id: int,
    user_id: int,
) -> tuple:
    """(sum of live lines, live line count, live lines carrying payments) for an invoice."""
    row = (
        await db.execute(
            select(
                func.coalesce(func.sum(PaymentSchedule.amount), 0),
                func.count(PaymentSchedule.id),
                func.coalesce(func.sum(case((PaymentSchedule.paid_amount > 0, 1), else_=0)), 0),
            ).where(
                PaymentSchedule.invoice_id == invoice_id,
                PaymentSchedule.user_id == user_id,
                PaymentSchedule.status != PaymentScheduleStatus.cancelled,
            )
        )
    ).one()
    return to_decimal(row[0]), int(row[1] or 0), int(row[2] or 0)


async def _live_line_sum(
    db: AsyncSession,
    user_id: int,
    *,
    invoice_id: int | None = None,
    booking_id: int | None = None,
    exclude_id: int | None = None,
):
    stmt = select(func.coalesce(func.sum(PaymentSchedule.amount), 0)).where(
        PaymentSchedule.user_id == user_id,
        PaymentSchedule.status != PaymentScheduleStatus.cancelled,
    )
    if invoice_id is not None:
        stmt = stmt.where(PaymentSchedule.invoice_id == invoice_id)
    else:
        # lines of the booking that no invoice covers
        stmt = stmt.where(
            PaymentSchedule.booking_id == booking_id,
            PaymentSchedule.invoice_id.is_(None),
        )
    if exclude_id is not None:
        stmt = stmt.where(PaymentSchedule.id != exclude_id)

    return to_decimal(await db.scalar(stmt))


async def _check_line_capacity(
    db: AsyncSession,
    user_id: int,
    *,
    invoice: Invoice | None,
    booking: Booking | None,
    amount,
    exclude_id: int | None = None,
) -> None:
    if invoice is not None:
        ceiling = to_decimal(invoice.total_amount)
        scheduled = await _live_line_sum(db, user_id, invoice_id=invoice.id, exclude_id=exclude_id)
    else:
        ceiling = to_decimal(booking.total_amount)
        scheduled = await _live_line_sum(db, user_id, booking_id=booking.id, exclude_id=exclude_id)

    amount = to_decimal(amount)
    if scheduled + amount > ceiling:
        raise AppException(
            400,
            "Scheduled payments would exceed the total",
            ErrorCode.PAYMENT_SCHEDULE_EXCEEDS_TOTAL,
            {"total": str(ceiling), "scheduled": str(scheduled), "amount": str(amount)},
        )


# =====================================================
# MANUAL LINES
# =====================================================
_NON_NULLABLE_FIELDS = {"payment_name", "schedule_type", "due_date", "amount"}


async def _lock_invoice(db: AsyncSession, invoice_id: int, user_id: int) -> Invoice:
    invoice = await db.scalar(
        select(Invoice)
        .options(noload(Invoice.client))
        .where(
            Invoice.id == invoice_id,
            Invoice.user_id == user_id,
        )
        .with_for_update()
    )
    if not invoice:
        raise AppException(404, "Invoice not found", ErrorCode.INVOICE_NOT_FOUND)
    return invoice


async def _lock_booking(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    booking = await db.scalar(
        select(Booking)
        .options(noload(Booking.client))
        .where(
            Booking.id == booking_id,
            Booking.user_id == user_id,
        )
        .with_for_update()
    )
    if not booking:
        raise AppException(404, "Booking not found", ErrorCode.BOOKING_NOT_FOUND)
    return booking


async def create_payment_schedule(
    db: AsyncSession,
    payload: PaymentScheduleCreate,
    user,
) -> PaymentScheduleOut:
    booking_id = payload.booking_id
    if booking_id is None and payload.invoice_id is not None:
        booking_id = await db.scalar(
            select(Invoice.booking_id).where(
                Invoice.id == payload.invoice_id,
                Invoice.user_id == user.id,
            )
        )

    # booking before invoice, the same order the booking cascade locks in
    booking = None
    if booking_id is not None:
        booking = await _lock_booking(db, booking_id, user.id)
        if booking.status in CANCELLED_BOOKING_STATUSES:
            raise AppException(
                400,
                "Cannot schedule payments on a cancelled booking",
                ErrorCode.BOOKING_INVALID_STATE,
            )

    invoice = None
    if payload.invoice_id is not None:
        invoice = await _lock_invoice(db, payload.invoice_id, user.id)
        if invoice.status in CANCELLED_INVOICE_STATUSES:
            raise AppException(
                400,
                "Cannot schedule payments on a cancelled invoice",
                ErrorCode.INVOICE_INVALID_STATE,
            )
        if invoice.booking_id is not None and invoice.booking_id != booking_id:
            raise AppException(
                400,
                "Invoice belongs to a different booking",
                ErrorCode.PAYMENT_SCHEDULE_BOOKING_MISMATCH,
            )

    amount = to_decimal(payload.amount)
    await _check_line_capacity(db, user.id, invoice=invoice, booking=booking, amount=amount)

    schedule = PaymentSchedule(
        user_id=user.id,
        invoice_id=payload.invoice_id,
        booking_id=booking_id,
        payment_name=payload.payment_name,
        schedule_type=payload.schedule_type,
        due_date=payload.due_date,
        amount=amount,
        paid_amount=ZERO,
        status=PaymentScheduleStatus.pending,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    db.add(schedule)
    await db.flush()

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.CREATE_PAYMENT_SCHEDULE,
        actor_email=user.email,
        target_name=f"{schedule.payment_name} #{schedule.id}",
        amount=amount,
    )

    await db.commit()
    await db.refresh(schedule)

    logger.info(
        "Payment schedule line created",
        extra={
            "schedule_id": schedule.id,
            "invoice_id": schedule.invoice_id,
            "booking_id": schedule.booking_id,
            "amount": str(amount),
        },
    )
    return PaymentScheduleOut.model_validate(schedule)


async def update_payment_schedule(
    db: AsyncSession,
    schedule_id: int,
    payload: PaymentScheduleUpdate,
    user,
) -> PaymentScheduleOut:
    schedule = await _get_schedule(db, schedule_id, user.id, for_update=True)

    if schedule.status == PaymentScheduleStatus.cancelled:
        raise AppException(
            400,
            "Cancelled schedule lines cannot be edited",
            ErrorCode.PAYMENT_SCHEDULE_INVALID_STATE,
        )

    data = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if not (v is None and k in _NON_NULLABLE_FIELDS)
    }

    if "amount" in data:
        data["amount"] = to_decimal(data["amount"])
        if data["amount"] > to_decimal(schedule.amount):
            invoice = None
            booking = None
            if schedule.invoice_id is not None:
                invoice = await _lock_invoice(db, schedule.invoice_id, user.id)
            elif schedule.booking_id is not None:
                booking = await _lock_booking(db, schedule.booking_id, user.id)
            if invoice is not None or booking is not None:
                await _check_line_capacity(
                    db,
                    user.id,
                    invoice=invoice,
                    booking=booking,
                    amount=data["amount"],
                    exclude_id=schedule.id,
                )

    changes = {}
    for field, value in data.items():
        if getattr(schedule, field) != value:
            changes[field] = value
            setattr(schedule, field, value)

    if "amount" in changes:
        schedule.status = (
            PaymentScheduleStatus.completed
            if to_decimal(schedule.paid_amount) >= schedule.amount
            else PaymentScheduleStatus.pending
        )

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.UPDATE_PAYMENT_SCHEDULE,
        actor_email=user.email,
        target_name=f"{schedule.payment_name} #{schedule.id}",
        changes=describe_changes(changes),
    )

    await db.commit()
    await db.refresh(schedule)

    logger.info(
        "Payment schedule line updated",
        extra={"schedule_id": schedule.id, "fields": list(changes)},
    )
    return PaymentScheduleOut.model_validate(schedule)


async def delete_payment_schedule(db: AsyncSession, schedule_id: int, user) -> None:
    schedule = await _get_schedule(db, schedule_id, user.id, for_update=True)

    if to_decimal(schedule.paid_amount) > ZERO:
        raise AppException(
            409,
            "Schedule line already has payments recorded",
            ErrorCode.PAYMENT_SCHEDULE_HAS_PAYMENTS,
        )

    target_name = f"{schedule.payment_name} #{schedule.id}"
    await db.delete(schedule)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.DELETE_PAYMENT_SCHEDULE,
        actor_email=user.email,
        target_name=target_name,
    )

    await db.commit()

    logger.info("Payment schedule line deleted", extra={"schedule_id": schedule_id})

    await db.commit()
    logger.info("Payment schedule line deleted", extra={"schedule_id": schedule_id, "user_id": user.id})
