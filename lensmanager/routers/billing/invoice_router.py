from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmanager.core.db import get_db
from lensmanager.models.enums.invoice_status import InvoiceStatus
from lensmanager.utils.get_user import get_current_user
from lensmanager.utils.response import success_response, APIResponse

from lensmanager.schemas.billing.invoice_schemas import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceOut,
    InvoiceDetailOut,
    InvoiceListData,
    InvoiceUpdateResult,
    InvoiceSendResult,
)

from lensmanager.services.billing.invoice_service import (
    create_invoice,
    get_invoice,
    list_invoices,
    update_invoice,
    delete_invoice,
    send_invoice,
)
from lensmanager.services.notifications.email_notifier import EmailNotifier, get_notifier

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
)


@router.post(
    "",
    response_model=APIResponse[InvoiceOut],
    status_code=201,
)
async def create_invoice_api(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    invoice = await create_invoice(db, payload, user)
    return success_response(
        "Invoice created successfully",
        invoice,
    )


@router.get(
    "",
    response_model=APIResponse[InvoiceListData],
)
async def list_invoices_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    status: InvoiceStatus | None = Query(None),
    client_id: int | None = Query(None),
    booking_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
):
    data = await list_invoices(
        db,
        user,
        status=status,
        client_id=client_id,
        booking_id=booking_id,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response(
        "Invoices retrieved successfully",
        data,
    )


@router.get(
    "/{invoice_id}",
    response_model=APIResponse[InvoiceDetailOut],
)
async def get_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    invoice = await get_invoice(db, invoice_id, user)
    return success_response(
        "Invoice retrieved successfully",
        invoice,
    )


@router.put(
    "/{invoice_id}",
    response_model=APIResponse[InvoiceUpdateResult],
)
async def update_invoice_api(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await update_invoice(db, invoice_id, user, payload)
    return success_response(
        "Invoice updated successfully",
        result,
    )


@router.delete(
    "/{invoice_id}",
    response_model=APIResponse[None],
)
async def delete_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await delete_invoice(db, invoice_id, user)
    return success_response("Invoice deleted successfully")


@router.post(
    "/{invoice_id}/send",
    response_model=APIResponse[InvoiceSendResult],
)
async def send_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    notifier: EmailNotifier = Depends(get_notifier),
):
    result = await send_invoice(db, invoice_id, user, notifier)
    message = (
        "Invoice sent successfully"
        if result.notification_status == "sent"
        else "Invoice marked as sent, but the email could not be delivered"
    )
    return success_response(message, result)
