import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import noload

from lensmanager.models.bookings.booking_models import Booking
from lensmanager.models.enums.booking_status import BookingStatus
from lensmanager.models.users.user_models import User
from lensmanager.schemas.bookings.booking_schemas import (
    BookingConfirmationOut,
    ConfirmationRequestOut,
    InvoiceCreationStatus,
)

from lensmanager.constants.activity_codes import ActivityCode
from lensmanager.constants.error_codes import ErrorCode
from lensmanager.core.config import APP_BASE_URL, BOOKING_CONFIRMATION_TTL_HOURS
from lensmanager.core.exceptions import AppException
from lensmanager.services.bookings.booking_service import (
    apply_booking_status,
    get_booking_for_update,
)
from lensmanager.services.clients.client_service import get_owned_client
from lensmanager.services.notifications.email_notifier import EmailNotifier
from lensmanager.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def confirmation_url(token: str) -> str:
    return f"{APP_BASE_URL}/confirm-booking?token={token}"


# =====================================================
# REQUEST
# =====================================================
async def request_booking_confirmation(
    db: AsyncSession,
    booking_id: int,
    user,
    notifier: EmailNotifier,
) -> ConfirmationRequestOut:
    booking = await get_booking_for_update(db, booking_id, user.id)

    if booking.status != BookingStatus.pending:
        raise AppException(
            400,
            "Only pending bookings can be sent for confirmation",
            ErrorCode.BOOKING_INVALID_STATE,
        )

    client = await get_owned_client(db, booking.client_id, user.id)
    if not client.email:
        raise AppException(
            400,
            "Client has no email address",
            ErrorCode.CLIENT_EMAIL_MISSING,
        )

    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(hours=BOOKING_CONFIRMATION_TTL_HOURS)
    booking.confirmation_token = token
    booking.confirmation_token_expires_at = expires_at

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.REQUEST_BOOKING_CONFIRMATION,
        actor_email=user.email,
        target_id=booking.id,
    )

    email_data = {
        "client_name": client.full_name,
        "business_name": user.display_name,
        "booking_date": booking.booking_date,
        "title": booking.title or "your session",
        "location": booking.location or "the agreed location",
        "expires_at": expires_at.strftime("%Y-%m-%d %H:%M UTC"),
        "confirmation_url": confirmation_url(token),
    }

    await db.commit()

    result = notifier.notify(client.email, "booking_confirmation_request", email_data)

    logger.info(
        "Booking confirmation requested",
        extra={"booking_id": booking_id, "notification": result.status},
    )

    return ConfirmationRequestOut(
        booking_id=booking_id,
        expires_at=expires_at,
        confirmation_url=email_data["confirmation_url"],
        notification_status=result.status.value,
    )


# =====================================================
# CONFIRM (public)
# =====================================================
async def confirm_booking_by_token(
    db: AsyncSession,
    token: str | None,
    notifier: EmailNotifier,
) -> BookingConfirmationOut:
    if not token:
        raise AppException(
            400,
            "Confirmation token is required",
            ErrorCode.CONFIRMATION_TOKEN_REQUIRED,
        )

    booking = await db.scalar(
        select(Booking)
        .options(noload(Booking.client))
        .where(Booking.confirmation_token == token)
        .with_for_update()
    )
    if not booking:
        raise AppException(404, "Invalid confirmation link", ErrorCode.CONFIRMATION_TOKEN_INVALID)

    booking_id = booking.id
    user_id = booking.user_id

    if (
        booking.confirmation_token_expires_at is None
        or _as_utc(booking.confirmation_token_expires_at) < datetime.now(timezone.utc)
    ):
        raise AppException(400, "Confirmation link has expired", ErrorCode.CONFIRMATION_TOKEN_EXPIRED)

    if booking.status == BookingStatus.confirmed:
        return BookingConfirmationOut(
            booking_id=booking_id,
            already_confirmed=True,
            status=booking.status,
        )

    if booking.status != BookingStatus.pending:
        raise AppException(
            400,
            "This booking can no longer be confirmed",
            ErrorCode.BOOKING_INVALID_STATE,
        )

    booking.confirmation_token = None
    booking.confirmation_token_expires_at = None
    transition = await apply_booking_status(db, booking, BookingStatus.confirmed)

    await emit_activity(
        db,
        user_id=user_id,
        username="client",
        code=ActivityCode.CONFIRM_BOOKING_BY_CLIENT,
        target_id=booking_id,
    )

    await db.commit()
    await db.refresh(booking)

    owner = await db.get(User, user_id)
    client = await get_owned_client(db, booking.client_id, user_id)
    if owner:
        notifier.notify(
            owner.email,
            "booking_confirmed",
            {
                "booking_id": booking_id,
                "client_name": client.full_name,
                "booking_date": booking.booking_date,
            },
        )

    invoice = transition.invoice
    return BookingConfirmationOut(
        booking_id=booking_id,
        already_confirmed=False,
        status=booking.status,
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        invoice_warning=(
            invoice.message if invoice.status == InvoiceCreationStatus.failed else None
        ),
    )
