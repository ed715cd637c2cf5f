# lensmanager/services/bookings/booking_service.py

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import noload

from lensmanager.models.bookings.booking_models import Booking
from lensmanager.models.billing.invoice_models import Invoice
from lensmanager.models.billing.payment_schedule_models import PaymentSchedule
from lensmanager.models.enums.booking_status import BookingStatus
from lensmanager.models.enums.invoice_status import InvoiceStatus, CANCELLED_INVOICE_STATUSES
from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus

from lensmanager.schemas.bookings.booking_schemas import (
    BookingCreate,
    BookingUpdate,
    BookingOut,
    BookingListData,
    BookingStatusResult,
    CascadeOutcome,
    InvoiceCreationOutcome,
    InvoiceCreationStatus,
)

from lensmanager.constants.activity_codes import ActivityCode
from lensmanager.constants.error_codes import ErrorCode
from lensmanager.core.exceptions import AppException
from lensmanager.services.billing.invoice_service import create_invoice_for_booking
from lensmanager.services.billing.payment_schedule_service import (
    cancel_invoice_payment_schedules,
    cancel_booking_direct_schedules,
)
from lensmanager.services.clients.client_service import get_owned_client
from lensmanager.utils.activity_helpers import emit_activity, describe_changes
from lensmanager.utils.decimal_utils import to_decimal

logger = logging.getLogger(__name__)

INVOICE_FAILURE_WARNING = (
    "Booking status updated, but the invoice could not be created automatically. "
    "Please create it manually."
)
CASCADE_FAILURE_WARNING = (
    "Booking status updated, but related invoices and payment schedules "
    "could not be cancelled."
)

# Columns that reject NULL; an explicit null in an update leaves them untouched.
_NON_NULLABLE_FIELDS = {
    "client_id",
    "booking_date",
    "location",
    "title",
    "pre_shoot",
    "album",
    "total_amount",
    "paid_amount",
    "deposit_amount",
    "deposit_paid",
    "wedding_album",
    "pre_shoot_album",
    "family_album",
    "extra_thank_you_cards_qty",
}


@dataclass
class StatusTransition:
    """What happened when a booking moved to a new status."""

    booking_id: int
    old_status: BookingStatus
    new_status: BookingStatus
    invoice: InvoiceCreationOutcome = field(default_factory=InvoiceCreationOutcome)
    cascade: CascadeOutcome = field(default_factory=CascadeOutcome)


# =====================================================
# HELPERS
# =====================================================
async def get_booking_for_update(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .options(noload(Booking.client))
        .where(
            Booking.id == booking_id,
            Booking.user_id == user_id,
        )
        .with_for_update()
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise AppException(404, "Booking not found", ErrorCode.BOOKING_NOT_FOUND)
    return booking


def _map_booking(booking: Booking) -> BookingOut:
    return BookingOut.model_validate(booking)


def _status_result(booking: Booking, transition: StatusTransition) -> BookingStatusResult:
    invoice = transition.invoice
    return BookingStatusResult(
        booking=_map_booking(booking),
        old_status=transition.old_status,
        new_status=transition.new_status,
        invoice=invoice,
        cascade=transition.cascade,
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        invoice_message=(
            invoice.message
            if invoice.status in (InvoiceCreationStatus.created, InvoiceCreationStatus.skipped)
            else None
        ),
        invoice_warning=(
            invoice.message if invoice.status == InvoiceCreationStatus.failed else None
        ),
    )


def _check_amounts(total_amount, deposit_amount) -> None:
    if to_decimal(deposit_amount) > to_decimal(total_amount):
        raise AppException(
            400,
            "Deposit amount cannot exceed the booking total",
            ErrorCode.BOOKING_INVALID_AMOUNTS,
        )


# =====================================================
# SIDE EFFECTS
# =====================================================
async def _ensure_invoice(db: AsyncSession, booking: Booking, transition: StatusTransition) -> None:
    invoice, created = await create_invoice_for_booking(db, booking)

    if created:
        await emit_activity(
            db,
            user_id=booking.user_id,
            username="system",
            code=ActivityCode.AUTO_CREATE_INVOICE,
            target_name=invoice.invoice_number,
            booking_id=booking.id,
        )

    transition.invoice = InvoiceCreationOutcome(
        status=InvoiceCreationStatus.created if created else InvoiceCreationStatus.skipped,
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        message=(
            f"Invoice {invoice.invoice_number} created automatically"
            if created
            else f"Invoice {invoice.invoice_number} already exists for this booking"
        ),
    )


async def _cascade_cancel(db: AsyncSession, booking: Booking, transition: StatusTransition) -> None:
    result = await db.execute(
        select(Invoice)
        .options(noload(Invoice.client))
        .where(
            Invoice.booking_id == booking.id,
            Invoice.user_id == booking.user_id,
            Invoice.status != InvoiceStatus.paid,
        )
        .with_for_update()
    )
    invoices = result.scalars().all()

    # a client-cancelled invoice settles as cancelled once its booking goes
    moved = [invoice for invoice in invoices if invoice.status != InvoiceStatus.cancelled]
    for invoice in moved:
        invoice.status = InvoiceStatus.cancelled
    await db.flush()

    # open lines left on already-cancelled invoices are swept too
    invoice_ids = [invoice.id for invoice in invoices]
    schedules_cancelled = await cancel_invoice_payment_schedules(
        db,
        invoice_ids=invoice_ids,
        user_id=booking.user_id,
    )
    schedules_cancelled += await cancel_booking_direct_schedules(
        db,
        booking_id=booking.id,
        user_id=booking.user_id,
    )

    transition.cascade = CascadeOutcome(
        applied=True,
        invoices_cancelled=len(moved),
        schedules_cancelled=schedules_cancelled,
    )


def _on_side_effect_failure(operation: str, transition: StatusTransition) -> None:
    if operation == "ensure_invoice":
        transition.invoice = InvoiceCreationOutcome(
            status=InvoiceCreationStatus.failed,
            message=INVOICE_FAILURE_WARNING,
        )
    else:
        transition.cascade = CascadeOutcome(
            applied=False,
            failed=True,
            message=CASCADE_FAILURE_WARNING,
        )


# new status -> (operation name, side effect)
BOOKING_TRANSITION_ACTIONS = {
    BookingStatus.confirmed: ("ensure_invoice", _ensure_invoice),
    BookingStatus.cancelled: ("cascade_cancel", _cascade_cancel),
    BookingStatus.cancel_by_client: ("cascade_cancel", _cascade_cancel),
}


# =====================================================
# STATUS TRANSITION
# =====================================================
async def apply_booking_status(
    db: AsyncSession,
    booking: Booking,
    new_status: BookingStatus,
) -> StatusTransition:
    """
    Write a booking's new status, then run the side effect the status maps
    to. The caller holds the row lock and owns the commit.

    The status write failing raises BOOKING_UPDATE_FAILED and nothing else
    runs. A side effect runs inside a savepoint; if it fails only the
    savepoint is rolled back and the failure is recorded on the transition.
    """
    booking_id = booking.id
    old_status = booking.status
    transition = StatusTransition(
        booking_id=booking_id,
        old_status=old_status,
        new_status=new_status,
    )

    booking.status = new_status
    try:
        await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "Booking status write failed",
            extra={"booking_id": booking_id, "new_status": new_status},
        )
        raise AppException(
            500,
            "Failed to update booking status",
            ErrorCode.BOOKING_UPDATE_FAILED,
        )

    action = BOOKING_TRANSITION_ACTIONS.get(new_status)
    if action is None:
        return transition

    operation, side_effect = action
    try:
        async with db.begin_nested():
            await side_effect(db, booking, transition)
    except Exception:
        logger.exception(
            "Booking side effect failed",
            extra={"booking_id": booking_id, "operation": operation},
        )
        _on_side_effect_failure(operation, transition)

    logger.info(
        "Booking status applied",
        extra={
            "booking_id": booking_id,
            "old_status": old_status,
            "new_status": new_status,
            "operation": operation,
        },
    )
    return transition


async def update_booking_status(
    db: AsyncSession,
    booking_id: int,
    user,
    new_status: BookingStatus,
) -> BookingStatusResult:
    booking = await get_booking_for_update(db, booking_id, user.id)

    transition = await apply_booking_status(db, booking, new_status)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.UPDATE_BOOKING_STATUS,
        actor_email=user.email,
        target_id=booking_id,
        old_status=transition.old_status.value,
        new_status=transition.new_status.value,
    )

    await db.commit()
    await db.refresh(booking)

    return _status_result(booking, transition)


# =====================================================
# CREATE
# =====================================================
async def create_booking(db: AsyncSession, payload: BookingCreate, user) -> BookingOut:
    await get_owned_client(db, payload.client_id, user.id)

    booking = Booking(
        user_id=user.id,
        status=BookingStatus.pending,
        **payload.model_dump(exclude_none=True),
    )
    db.add(booking)
    await db.flush()

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.CREATE_BOOKING,
        actor_email=user.email,
        target_id=booking.id,
        booking_date=booking.booking_date,
    )

    await db.commit()
    await db.refresh(booking)

    logger.info("Booking created", extra={"booking_id": booking.id, "user_id": user.id})
    return _map_booking(booking)


# =====================================================
# GET / LIST
# =====================================================
async def get_booking(db: AsyncSession, booking_id: int, user) -> BookingOut:
    booking = await db.scalar(
        select(Booking)
        .options(noload(Booking.client))
        .where(
            Booking.id == booking_id,
            Booking.user_id == user.id,
        )
    )
    if not booking:
        raise AppException(404, "Booking not found", ErrorCode.BOOKING_NOT_FOUND)
    return _map_booking(booking)


async def list_bookings(
    db: AsyncSession,
    user,
    *,
    status: BookingStatus | None = None,
    client_id: int | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "booking_date",
    order: str = "desc",
) -> BookingListData:
    base_query = (
        select(Booking)
        .options(noload(Booking.client))
        .where(Booking.user_id == user.id)
    )

    if status:
        base_query = base_query.where(Booking.status == status)

    if client_id:
        base_query = base_query.where(Booking.client_id == client_id)

    total = await db.scalar(
        select(func.count()).select_from(base_query.subquery())
    )

    sort_map = {
        "booking_date": Booking.booking_date,
        "created_at": Booking.created_at,
        "total_amount": Booking.total_amount,
    }
    sort_col = sort_map.get(sort_by, Booking.booking_date)

    result = await db.execute(
        base_query
        .order_by(asc(sort_col) if order == "asc" else desc(sort_col), Booking.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return BookingListData(
        total=total or 0,
        items=[_map_booking(b) for b in result.scalars().all()],
    )


# =====================================================
# UPDATE
# =====================================================
async def update_booking(
    db: AsyncSession,
    booking_id: int,
    payload: BookingUpdate,
    user,
) -> BookingStatusResult:
    """Edit booking fields; a status in the payload goes through apply_booking_status."""
    booking = await get_booking_for_update(db, booking_id, user.id)

    data = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if not (v is None and k in _NON_NULLABLE_FIELDS)
    }
    new_status = data.pop("status", None)

    if "client_id" in data and data["client_id"] != booking.client_id:
        await get_owned_client(db, data["client_id"], user.id)

    _check_amounts(
        data.get("total_amount", booking.total_amount),
        data.get("deposit_amount", booking.deposit_amount),
    )

    changes = {}
    for field_name, value in data.items():
        if getattr(booking, field_name) != value:
            changes[field_name] = value
            setattr(booking, field_name, value)

    try:
        await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Booking update failed", extra={"booking_id": booking_id})
        raise AppException(500, "Failed to update booking", ErrorCode.BOOKING_UPDATE_FAILED)

    if new_status is not None:
        transition = await apply_booking_status(db, booking, new_status)
        if transition.old_status != transition.new_status:
            changes["status"] = transition.new_status.value
    else:
        transition = StatusTransition(
            booking_id=booking_id,
            old_status=booking.status,
            new_status=booking.status,
        )

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.UPDATE_BOOKING,
        actor_email=user.email,
        target_id=booking_id,
        changes=describe_changes(changes),
    )

    await db.commit()
    await db.refresh(booking)

    logger.info("Booking updated", extra={"booking_id": booking_id, "fields": list(changes)})
    return _status_result(booking, transition)


# =====================================================
# DELETE
# =====================================================
async def delete_booking(db: AsyncSession, booking_id: int, user) -> None:
    booking = await get_booking_for_update(db, booking_id, user.id)

    active_invoices = await db.scalar(
        select(func.count(Invoice.id)).where(
            Invoice.booking_id == booking.id,
            Invoice.user_id == user.id,
            Invoice.status.notin_(list(CANCELLED_INVOICE_STATUSES)),
        )
    )
    active_schedules = await db.scalar(
        select(func.count(PaymentSchedule.id)).where(
            PaymentSchedule.booking_id == booking.id,
            PaymentSchedule.user_id == user.id,
            PaymentSchedule.status != PaymentScheduleStatus.cancelled,
        )
    )
    if active_invoices or active_schedules:
        raise AppException(
            409,
            "Booking has active invoices or payment schedules; cancel it instead",
            ErrorCode.BOOKING_HAS_ACTIVE_BILLING,
            {"invoices": active_invoices, "payment_schedules": active_schedules},
        )

    await db.delete(booking)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.DELETE_BOOKING,
        actor_email=user.email,
        target_id=booking_id,
    )

    await db.commit()
    logger.info("Booking deleted", extra={"booking_id": booking_id, "user_id": user.id})
