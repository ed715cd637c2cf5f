from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.core.db import get_db
from lensmanager.utils.get_user import get_current_user
from lensmanager.utils.response import success_response, APIResponse

from lensmanager.schemas.clients.client_schemas import (
    ClientCreate,
    ClientUpdate,
    ClientOut,
    ClientListData,
)
from lensmanager.services.clients.client_service import (
    create_client,
    get_client,
    list_clients,
    update_client,
    delete_client,
)

router = APIRouter(
    prefix="/clients",
    tags=["Clients"],
)


@router.post(
    "",
    response_model=APIResponse[ClientOut],
    status_code=201,
)
async def create_client_api(
    payload: ClientCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    client = await create_client(db, payload, user)
    return success_response("Client created successfully", client)


@router.get(
    "",
    response_model=APIResponse[ClientListData],
)
async def list_clients_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
):
    data = await list_clients(
        db,
        user,
        search=search,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response("Clients retrieved successfully", data)


@router.get(
    "/{client_id}",
    response_model=APIResponse[ClientOut],
)
async def get_client_api(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    client = await get_client(db, client_id, user)
    return success_response("Client retrieved successfully", client)


@router.put(
    "/{client_id}",
    response_model=APIResponse[ClientOut],
)
async def update_client_api(
    client_id: int,
    payload: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    client = await update_client(db, client_id, payload, user)
    return success_response("Client updated successfully", client)


@router.delete(
    "/{client_id}",
    response_model=APIResponse[None],
)
async def delete_client_api(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await delete_client(db, client_id, user)
    return success_response("Client deleted successfully")
