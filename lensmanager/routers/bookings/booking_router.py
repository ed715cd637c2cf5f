from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.core.db import get_db
from lensmanager.models.enums.booking_status import BookingStatus
from lensmanager.utils.get_user import get_current_user
from lensmanager.utils.response import success_response, APIResponse

from lensmanager.schemas.bookings.booking_schemas import (
    BookingCreate,
    BookingUpdate,
    BookingStatusUpdate,
    BookingOut,
    BookingListData,
    BookingStatusResult,
    ConfirmationRequestOut,
)
from lensmanager.services.bookings.booking_service import (
    create_booking,
    get_booking,
    list_bookings,
    update_booking,
    update_booking_status,
    delete_booking,
)
from lensmanager.services.bookings.booking_confirmation_service import (
    request_booking_confirmation,
)
from lensmanager.services.notifications.email_notifier import EmailNotifier, get_notifier

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
)


@router.post(
    "",
    response_model=APIResponse[BookingOut],
    status_code=201,
)
async def create_booking_api(
    payload: BookingCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    booking = await create_booking(db, payload, user)
    return success_response("Booking created successfully", booking)


@router.get(
    "",
    response_model=APIResponse[BookingListData],
)
async def list_bookings_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    status: BookingStatus | None = Query(None),
    client_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("booking_date"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
):
    data = await list_bookings(
        db,
        user,
        status=status,
        client_id=client_id,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response("Bookings retrieved successfully", data)


@router.get(
    "/{booking_id}",
    response_model=APIResponse[BookingOut],
)
async def get_booking_api(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    booking = await get_booking(db, booking_id, user)
    return success_response("Booking retrieved successfully", booking)


@router.patch(
    "/{booking_id}",
    response_model=APIResponse[BookingStatusResult],
)
async def update_booking_api(
    booking_id: int,
    payload: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await update_booking(db, booking_id, payload, user)
    return success_response("Booking updated successfully", result)


@router.put(
    "/{booking_id}/status",
    response_model=APIResponse[BookingStatusResult],
)
async def update_booking_status_api(
    booking_id: int,
    payload: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await update_booking_status(db, booking_id, user, payload.status)
    return success_response("Booking status updated successfully", result)


@router.post(
    "/{booking_id}/confirmation-request",
    response_model=APIResponse[ConfirmationRequestOut],
)
async def request_booking_confirmation_api(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    notifier: EmailNotifier = Depends(get_notifier),
):
    data = await request_booking_confirmation(db, booking_id, user, notifier)
    return success_response("Confirmation request sent", data)


@router.delete(
    "/{booking_id}",
    response_model=APIResponse[None],
)
async def delete_booking_api(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await delete_booking(db, booking_id, user)
    return success_response("Booking deleted successfully")
