import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.models.bookings.booking_models import Booking

logger = logging.getLogger(__name__)


async def clear_expired_confirmation_tokens(db: AsyncSession, now: datetime | None = None) -> int:
    """Drop confirmation links that can no longer be used. Booking status is untouched."""
    now = now or datetime.now(timezone.utc)

    result = await db.execute(
        update(Booking)
        .where(
            Booking.confirmation_token.isnot(None),
            Booking.confirmation_token_expires_at < now,
        )
        .values(
            confirmation_token=None,
            confirmation_token_expires_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    cleared = result.rowcount or 0
    if cleared:
        logger.info("Expired confirmation tokens cleared", extra={"count": cleared})
    return cleared
