import logging
from datetime import date, timedelta
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import noload

from lensmanager.models.billing.invoice_models import Invoice
from lensmanager.models.billing.payment_schedule_models import PaymentSchedule
from lensmanager.models.bookings.booking_models import Booking
from lensmanager.models.clients.client_models import Client

from lensmanager.models.enums.invoice_status import InvoiceStatus, CANCELLED_INVOICE_STATUSES

from lensmanager.schemas.billing.invoice_schemas import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceOut,
    InvoiceDetailOut,
    InvoiceListData,
    InvoiceListItem,
    InvoiceUpdateResult,
    InvoiceSendResult,
    ScheduleAction,
    ScheduleOutcome,
)
from lensmanager.schemas.billing.payment_schedule_schemas import PaymentScheduleOut

from lensmanager.constants.activity_codes import ActivityCode
from lensmanager.constants.error_codes import ErrorCode

from lensmanager.core.config import INVOICE_DUE_DAYS
from lensmanager.core.exceptions import AppException
from lensmanager.services.billing.payment_schedule_service import (
    generate_payment_schedule,
    cancel_invoice_payment_schedules,
    invoice_schedule_totals,
)
from lensmanager.services.clients.client_service import get_owned_client
from lensmanager.services.notifications.email_notifier import EmailNotifier
from lensmanager.utils.activity_helpers import emit_activity, describe_changes
from lensmanager.utils.decimal_utils import to_decimal

logger = logging.getLogger(__name__)

# Columns that reject NULL; an explicit null in an update leaves them untouched.
_NON_NULLABLE_FIELDS = {
    "client_id",
    "invoice_number",
    "issue_date",
    "due_date",
    "subtotal",
    "tax_amount",
    "total_amount",
    "deposit_amount",
    "status",
}


# =====================================================
# HELPERS
# =====================================================
def booking_invoice_number(booking_id: int, today: date | None = None) -> str:
    today = today or date.today()
    return f"INV-{today:%Y%m%d}-{booking_id:04d}"


def _manual_invoice_number(today: date | None = None) -> str:
    today = today or date.today()
    return f"INV-{today:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


async def _invoice_number_taken(
    db: AsyncSession,
    invoice_number: str,
    exclude_id: int | None = None,
) -> bool:
    stmt = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
    if exclude_id is not None:
        stmt = stmt.where(Invoice.id != exclude_id)
    return (await db.scalar(stmt)) is not None


async def _get_invoice(
    db: AsyncSession,
    invoice_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> Invoice:
    stmt = (
        select(Invoice)
        .options(noload(Invoice.client))
        .where(
            Invoice.id == invoice_id,
            Invoice.user_id == user_id,
        )
    )
    if for_update:
        stmt = stmt.with_for_update()

    invoice = (await db.execute(stmt)).scalar_one_or_none()
    if not invoice:
        raise AppException(404, "Invoice not found", ErrorCode.INVOICE_NOT_FOUND)
    return invoice


async def _get_owned_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> Booking:
    stmt = (
        select(Booking)
        .options(noload(Booking.client))
        .where(
            Booking.id == booking_id,
            Booking.user_id == user_id,
        )
    )
    # attaching an invoice takes the same row lock as the booking status change
    if for_update:
        stmt = stmt.with_for_update()

    booking = await db.scalar(stmt)
    if not booking:
        raise AppException(404, "Booking not found", ErrorCode.BOOKING_NOT_FOUND)
    return booking


async def find_invoice_for_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
) -> Invoice | None:
    return await db.scalar(
        select(Invoice)
        .options(noload(Invoice.client))
        .where(
            Invoice.booking_id == booking_id,
            Invoice.user_id == user_id,
        )
        .order_by(Invoice.id)
        .limit(1)
    )


def _map_invoice(invoice: Invoice) -> InvoiceOut:
    return InvoiceOut.model_validate(invoice)


def _resolve_totals(
    subtotal,
    tax_amount,
    total_amount,
    deposit_amount,
):
    subtotal = to_decimal(subtotal)
    tax_amount = to_decimal(tax_amount)
    expected_total = subtotal + tax_amount

    if total_amount is not None and to_decimal(total_amount) != expected_total:
        raise AppException(
            400,
            "Total amount must equal subtotal plus tax",
            ErrorCode.INVOICE_AMOUNT_MISMATCH,
            {"expected_total": str(expected_total), "total_amount": str(to_decimal(total_amount))},
        )

    deposit_amount = to_decimal(deposit_amount)
    if deposit_amount > expected_total:
        raise AppException(
            400,
            "Deposit amount cannot exceed the invoice total",
            ErrorCode.INVOICE_DEPOSIT_EXCEEDS_TOTAL,
        )

    return subtotal, tax_amount, expected_total, deposit_amount


# =====================================================
# BOOKING INVOICE (used by the booking status handler)
# =====================================================
async def create_invoice_for_booking(
    db: AsyncSession,
    booking: Booking,
) -> tuple[Invoice, bool]:
    """
    Return the booking's invoice, creating a draft from the booking totals
    when none exists. The flag is True when a new invoice was inserted.
    """
    existing = await find_invoice_for_booking(db, booking.id, booking.user_id)
    if existing:
        logger.info(
            "Invoice already exists for booking",
            extra={"booking_id": booking.id, "invoice_id": existing.id},
        )
        return existing, False

    today = date.today()
    invoice_number = booking_invoice_number(booking.id, today)
    suffix = 1
    while await _invoice_number_taken(db, invoice_number):
        suffix += 1
        invoice_number = f"{booking_invoice_number(booking.id, today)}-{suffix}"

    total = to_decimal(booking.total_amount)
    deposit = min(to_decimal(booking.deposit_amount), total)

    invoice = Invoice(
        user_id=booking.user_id,
        client_id=booking.client_id,
        booking_id=booking.id,
        invoice_number=invoice_number,
        issue_date=today,
        due_date=today + timedelta(days=INVOICE_DUE_DAYS),
        subtotal=total,
        tax_amount=to_decimal(0),
        total_amount=total,
        deposit_amount=deposit,
        status=InvoiceStatus.draft,
    )
    db.add(invoice)
    await db.flush()

    logger.info(
        "Invoice created for booking",
        extra={"booking_id": booking.id, "invoice_id": invoice.id, "invoice_number": invoice_number},
    )
    return invoice, True


# =====================================================
# STATUS TRANSITIONS
# =====================================================
async def _regenerate_schedule(db: AsyncSession, invoice: Invoice) -> ScheduleOutcome:
    lines = await generate_payment_schedule(
        db,
        invoice_id=invoice.id,
        booking_id=invoice.booking_id,
        user_id=invoice.user_id,
        total_amount=invoice.total_amount,
        deposit_amount=invoice.deposit_amount,
    )
    return ScheduleOutcome(action=ScheduleAction.regenerated, lines=len(lines))


async def _cancel_schedule(db: AsyncSession, invoice: Invoice) -> ScheduleOutcome:
    cancelled = await cancel_invoice_payment_schedules(
        db,
        invoice_ids=[invoice.id],
        user_id=invoice.user_id,
    )
    return ScheduleOutcome(action=ScheduleAction.cancelled, lines=cancelled)


def _schedule_action_for(
    old_status: InvoiceStatus,
    new_status: InvoiceStatus,
    reschedule: bool = False,
):
    if new_status == InvoiceStatus.pending and old_status != InvoiceStatus.pending:
        return _regenerate_schedule
    if new_status in CANCELLED_INVOICE_STATUSES:
        return _cancel_schedule if new_status != old_status else None
    # totals changed under unpaid lines
    if reschedule:
        return _regenerate_schedule
    return None


async def apply_invoice_transition(
    db: AsyncSession,
    invoice: Invoice,
    old_status: InvoiceStatus,
    new_status: InvoiceStatus,
    *,
    reschedule: bool = False,
) -> ScheduleOutcome:
    """
    Run the schedule side effect of a status change inside a savepoint.
    With reschedule set, unpaid lines are rebuilt from the new totals even
    when the status did not move. A failure rolls back only the side effect
    and is reported in the outcome.
    """
    action = _schedule_action_for(old_status, new_status, reschedule)
    if action is None:
        return ScheduleOutcome()

    invoice_id = invoice.id
    try:
        async with db.begin_nested():
            return await action(db, invoice)
    except Exception:
        logger.exception(
            "Payment schedule side effect failed",
            extra={
                "invoice_id": invoice_id,
                "operation": action.__name__.lstrip("_"),
                "old_status": old_status,
                "new_status": new_status,
            },
        )
        return ScheduleOutcome(
            action=ScheduleAction.failed,
            message="Invoice saved, but its payment schedule could not be updated",
        )


# =====================================================
# CREATE
# =====================================================
async def create_invoice(db: AsyncSession, payload: InvoiceCreate, user) -> InvoiceOut:
    await get_owned_client(db, payload.client_id, user.id)

    if payload.booking_id is not None:
        await _get_owned_booking(db, payload.booking_id, user.id, for_update=True)
        if await find_invoice_for_booking(db, payload.booking_id, user.id):
            raise AppException(
                409,
                "An invoice already exists for this booking",
                ErrorCode.INVOICE_ALREADY_EXISTS_FOR_BOOKING,
            )

    subtotal, tax_amount, total, deposit = _resolve_totals(
        payload.subtotal,
        payload.tax_amount,
        payload.total_amount,
        payload.deposit_amount,
    )

    invoice_number = payload.invoice_number or _manual_invoice_number()
    if await _invoice_number_taken(db, invoice_number):
        raise AppException(409, "Invoice number already exists", ErrorCode.INVOICE_NUMBER_EXISTS)

    issue_date = payload.issue_date or date.today()
    invoice = Invoice(
        user_id=user.id,
        client_id=payload.client_id,
        booking_id=payload.booking_id,
        invoice_number=invoice_number,
        issue_date=issue_date,
        due_date=payload.due_date or issue_date + timedelta(days=INVOICE_DUE_DAYS),
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=total,
        deposit_amount=deposit,
        status=payload.status,
        notes=payload.notes,
    )
    db.add(invoice)
    await db.flush()

    # An invoice created directly as pending gets its schedule straight away.
    if payload.status == InvoiceStatus.pending:
        await _regenerate_schedule(db, invoice)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.CREATE_INVOICE,
        actor_email=user.email,
        target_name=invoice.invoice_number,
    )

    await db.commit()
    await db.refresh(invoice)

    logger.info("Invoice created", extra={"invoice_id": invoice.id, "user_id": user.id})
    return _map_invoice(invoice)


# =====================================================
# GET / LIST
# =====================================================
async def get_invoice(db: AsyncSession, invoice_id: int, user) -> InvoiceDetailOut:
    invoice = await _get_invoice(db, invoice_id, user.id)

    result = await db.execute(
        select(PaymentSchedule)
        .where(
            PaymentSchedule.invoice_id == invoice.id,
            PaymentSchedule.user_id == user.id,
        )
        .order_by(PaymentSchedule.due_date, PaymentSchedule.id)
    )

    return InvoiceDetailOut(
        **_map_invoice(invoice).model_dump(),
        payment_schedules=[
            PaymentScheduleOut.model_validate(s) for s in result.scalars().all()
        ],
    )


async def list_invoices(
    db: AsyncSession,
    user,
    *,
    status: InvoiceStatus | None = None,
    client_id: int | None = None,
    booking_id: int | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> InvoiceListData:
    base_query = (
        select(Invoice, Client.full_name)
        .join(Client, Client.id == Invoice.client_id)
        .options(noload(Invoice.client))
        .where(Invoice.user_id == user.id)
    )

    if status:
        base_query = base_query.where(Invoice.status == status)

    if client_id:
        base_query = base_query.where(Invoice.client_id == client_id)

    if booking_id:
        base_query = base_query.where(Invoice.booking_id == booking_id)

    total = await db.scalar(
        select(func.count()).select_from(base_query.subquery())
    )

    sort_map = {
        "created_at": Invoice.created_at,
        "issue_date": Invoice.issue_date,
        "due_date": Invoice.due_date,
        "total_amount": Invoice.total_amount,
    }
    sort_col = sort_map.get(sort_by, Invoice.created_at)

    result = await db.execute(
        base_query
        .order_by(asc(sort_col) if order == "asc" else desc(sort_col), Invoice.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    items = [
        InvoiceListItem(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            client_id=invoice.client_id,
            client_name=client_name,
            booking_id=invoice.booking_id,
            total_amount=invoice.total_amount,
            deposit_amount=invoice.deposit_amount,
            due_date=invoice.due_date,
            status=invoice.status,
        )
        for invoice, client_name in result.all()
    ]

    return InvoiceListData(total=total or 0, items=items)


# =====================================================
# UPDATE
# =====================================================
async def update_invoice(
    db: AsyncSession,
    invoice_id: int,
    user,
    payload: InvoiceUpdate,
) -> InvoiceUpdateResult:
    invoice = await _get_invoice(db, invoice_id, user.id, for_update=True)
    old_status = invoice.status

    data = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if not (v is None and k in _NON_NULLABLE_FIELDS)
    }

    if "client_id" in data and data["client_id"] != invoice.client_id:
        await get_owned_client(db, data["client_id"], user.id)

    if data.get("booking_id") is not None and data["booking_id"] != invoice.booking_id:
        await _get_owned_booking(db, data["booking_id"], user.id, for_update=True)
        other = await find_invoice_for_booking(db, data["booking_id"], user.id)
        if other and other.id != invoice.id:
            raise AppException(
                409,
                "An invoice already exists for this booking",
                ErrorCode.INVOICE_ALREADY_EXISTS_FOR_BOOKING,
            )

    if "invoice_number" in data and data["invoice_number"] != invoice.invoice_number:
        if await _invoice_number_taken(db, data["invoice_number"], exclude_id=invoice.id):
            raise AppException(409, "Invoice number already exists", ErrorCode.INVOICE_NUMBER_EXISTS)

    subtotal, tax_amount, total, deposit = _resolve_totals(
        data.get("subtotal", invoice.subtotal),
        data.get("tax_amount", invoice.tax_amount),
        data.get("total_amount"),
        data.get("deposit_amount", invoice.deposit_amount),
    )
    data.update(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=total,
        deposit_amount=deposit,
    )

    # Live schedule lines must never add up to more than the invoice total.
    # Unpaid lines are rebuilt from the new totals; once money is recorded
    # against a line, the total may not drop below what is scheduled.
    reschedule = False
    amounts_changed = (
        total != to_decimal(invoice.total_amount)
        or deposit != to_decimal(invoice.deposit_amount)
    )
    if amounts_changed and data.get("status", old_status) not in CANCELLED_INVOICE_STATUSES:
        scheduled, live_lines, paid_lines = await invoice_schedule_totals(
            db,
            invoice_id=invoice.id,
            user_id=user.id,
        )
        if live_lines and not paid_lines:
            reschedule = True
        elif scheduled > total:
            raise AppException(
                400,
                "Invoice total cannot drop below its scheduled payments",
                ErrorCode.INVOICE_TOTAL_BELOW_SCHEDULE,
                {"total_amount": str(total), "scheduled": str(scheduled)},
            )

    changes = {}
    for field, value in data.items():
        if getattr(invoice, field) != value:
            changes[field] = value
            setattr(invoice, field, value)

    new_status = invoice.status

    try:
        await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Invoice update failed", extra={"invoice_id": invoice_id})
        raise AppException(500, "Failed to update invoice", ErrorCode.INVOICE_UPDATE_FAILED)

    schedule_outcome = await apply_invoice_transition(
        db,
        invoice,
        old_status,
        new_status,
        reschedule=reschedule,
    )

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.UPDATE_INVOICE,
        actor_email=user.email,
        target_name=data.get("invoice_number", invoice.invoice_number),
        changes=describe_changes(changes),
    )

    await db.commit()
    await db.refresh(invoice)

    logger.info(
        "Invoice updated",
        extra={
            "invoice_id": invoice.id,
            "old_status": old_status,
            "new_status": new_status,
            "schedule_action": schedule_outcome.action,
        },
    )

    return InvoiceUpdateResult(
        invoice=_map_invoice(invoice),
        old_status=old_status,
        new_status=new_status,
        schedule_outcome=schedule_outcome,
    )


# =====================================================
# DELETE
# =====================================================
async def delete_invoice(db: AsyncSession, invoice_id: int, user) -> None:
    invoice = await _get_invoice(db, invoice_id, user.id, for_update=True)
    invoice_number = invoice.invoice_number

    await db.execute(
        delete(PaymentSchedule).where(
            PaymentSchedule.invoice_id == invoice.id,
            PaymentSchedule.user_id == user.id,
        )
    )
    await db.delete(invoice)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.DELETE_INVOICE,
        actor_email=user.email,
        target_name=invoice_number,
    )

    await db.commit()
    logger.info("Invoice deleted", extra={"invoice_id": invoice_id, "user_id": user.id})


# =====================================================
# SEND
# =====================================================
async def send_invoice(
    db: AsyncSession,
    invoice_id: int,
    user,
    notifier: EmailNotifier,
) -> InvoiceSendResult:
    invoice = await _get_invoice(db, invoice_id, user.id, for_update=True)
    client = await get_owned_client(db, invoice.client_id, user.id)

    if not client.email:
        raise AppException(
            400,
            "Client has no email address",
            ErrorCode.CLIENT_EMAIL_MISSING,
        )

    if invoice.status in CANCELLED_INVOICE_STATUSES:
        raise AppException(
            400,
            "Cancelled invoices cannot be sent",
            ErrorCode.INVOICE_INVALID_STATE,
        )

    if invoice.status == InvoiceStatus.draft:
        invoice.status = InvoiceStatus.sent

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.SEND_INVOICE,
        actor_email=user.email,
        target_name=invoice.invoice_number,
        recipient=client.email,
    )

    await db.commit()
    await db.refresh(invoice)

    result = notifier.notify(
        client.email,
        "invoice_sent",
        {
            "client_name": client.full_name,
            "business_name": user.display_name,
            "invoice_number": invoice.invoice_number,
            "issue_date": invoice.issue_date,
            "due_date": invoice.due_date,
            "subtotal": invoice.subtotal,
            "tax_amount": invoice.tax_amount,
            "total_amount": invoice.total_amount,
            "deposit_amount": invoice.deposit_amount,
        },
    )

    return InvoiceSendResult(
        invoice=_map_invoice(invoice),
        recipient=client.email,
        notification_status=result.status.value,
    )
