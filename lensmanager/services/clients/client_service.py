# lensmanager/services/clients/client_service.py

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc

from lensmanager.models.clients.client_models import Client
from lensmanager.models.bookings.booking_models import Booking
from lensmanager.models.billing.invoice_models import Invoice
from lensmanager.schemas.clients.client_schemas import (
    ClientCreate,
    ClientUpdate,
    ClientOut,
    ClientListData,
)

from lensmanager.core.exceptions import AppException
from lensmanager.constants.error_codes import ErrorCode
from lensmanager.utils.activity_helpers import emit_activity, describe_changes
from lensmanager.constants.activity_codes import ActivityCode

logger = logging.getLogger(__name__)


async def get_owned_client(db: AsyncSession, client_id: int, user_id: int) -> Client:
    result = await db.execute(
        select(Client).where(
            Client.id == client_id,
            Client.user_id == user_id,
        )
    )
    client = result.scalar_one_or_none()
    if not client:
        raise AppException(404, "Client not found", ErrorCode.CLIENT_NOT_FOUND)
    return client


# =========================
# CREATE
# =========================
async def create_client(db: AsyncSession, payload: ClientCreate, user) -> ClientOut:
    client = Client(user_id=user.id, **payload.model_dump())
    db.add(client)
    await db.flush()

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.CREATE_CLIENT,
        actor_email=user.email,
        target_name=client.full_name,
    )

    await db.commit()
    await db.refresh(client)

    logger.info("Client created", extra={"client_id": client.id, "user_id": user.id})
    return ClientOut.model_validate(client)


# =========================
# GET
# =========================
async def get_client(db: AsyncSession, client_id: int, user) -> ClientOut:
    client = await get_owned_client(db, client_id, user.id)
    return ClientOut.model_validate(client)


# =========================
# LIST
# =========================
async def list_clients(
    db: AsyncSession,
    user,
    *,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> ClientListData:
    query = select(Client).where(Client.user_id == user.id)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            Client.full_name.ilike(pattern) | Client.email.ilike(pattern)
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    sort_map = {
        "created_at": Client.created_at,
        "full_name": Client.full_name,
    }
    sort_col = sort_map.get(sort_by, Client.created_at)

    result = await db.execute(
        query.order_by(asc(sort_col) if order == "asc" else desc(sort_col), Client.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return ClientListData(
        total=total or 0,
        items=[ClientOut.model_validate(c) for c in result.scalars().all()],
    )


# =========================
# UPDATE
# =========================
async def update_client(db: AsyncSession, client_id: int, payload: ClientUpdate, user) -> ClientOut:
    client = await get_owned_client(db, client_id, user.id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("full_name") is None:
        data.pop("full_name", None)

    changes = {}
    for field, value in data.items():
        if getattr(client, field) != value:
            changes[field] = value
            setattr(client, field, value)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.UPDATE_CLIENT,
        actor_email=user.email,
        target_name=client.full_name,
        changes=describe_changes(changes),
    )

    await db.commit()
    await db.refresh(client)

    logger.info("Client updated", extra={"client_id": client.id, "fields": list(changes)})
    return ClientOut.model_validate(client)


# =========================
# DELETE
# =========================
async def delete_client(db: AsyncSession, client_id: int, user) -> None:
    client = await get_owned_client(db, client_id, user.id)

    bookings = await db.scalar(
        select(func.count(Booking.id)).where(
            Booking.client_id == client.id,
            Booking.user_id == user.id,
        )
    )
    invoices = await db.scalar(
        select(func.count(Invoice.id)).where(
            Invoice.client_id == client.id,
            Invoice.user_id == user.id,
        )
    )
    if bookings or invoices:
        raise AppException(
            409,
            "Client still has bookings or invoices",
            ErrorCode.CLIENT_HAS_RELATED_RECORDS,
            {"bookings": bookings, "invoices": invoices},
        )

    full_name = client.full_name
    await db.delete(client)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.email,
        code=ActivityCode.DELETE_CLIENT,
        actor_email=user.email,
        target_name=full_name,
    )

    await db.commit()
    logger.info("Client deleted", extra={"client_id": client_id, "user_id": user.id})
