from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.core.db import get_db
from lensmanager.utils.response import success_response, APIResponse
from lensmanager.schemas.bookings.booking_schemas import BookingConfirmationOut
from lensmanager.services.bookings.booking_confirmation_service import confirm_booking_by_token
from lensmanager.services.notifications.email_notifier import EmailNotifier, get_notifier

# Public: reached from the link in the client's email, no bearer token.
router = APIRouter(tags=["Booking Confirmation"])


@router.get(
    "/confirm-booking",
    response_model=APIResponse[BookingConfirmationOut],
)
async def confirm_booking_api(
    token: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    data = await confirm_booking_by_token(db, token, notifier)
    message = (
        "Booking already confirmed"
        if data.already_confirmed
        else "Booking confirmed successfully"
    )
    return success_response(message, data)
