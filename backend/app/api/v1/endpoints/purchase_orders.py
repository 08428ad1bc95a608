"""Retail Ops — Purchase Order endpoints."""
import math
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    CurrentUser, get_db, require_permission,
    PERM_PURCHASE_ORDERS_READ, PERM_PURCHASE_ORDERS_RECEIVE, PERM_PURCHASE_ORDERS_WRITE,
)
from app.models.purchase_order import POStatus
from app.schemas.common import ApiResponse, Meta
from app.schemas.purchase_order import (
    POCreate, POLineReceive, POLineResponse, POListItem, POResponse, POUpdate,
)
from app.services.purchase_order_service import PurchaseOrderService
from app.services.receiving_service import ReceivingService, SerializedItem

router = APIRouter()


def _po_to_list_item(po) -> POListItem:
    return POListItem(
        id=po.id,
        po_number=po.po_number,
        supplier=po.supplier,
        status=po.status,
        order_date=po.order_date,
        expected_date=po.expected_date,
        received_date=po.received_date,
        total_amount=po.total_amount,
        line_count=len(po.lines),
        created_at=po.created_at,
    )


@router.get("", response_model=ApiResponse[list[POListItem]])
async def list_purchase_orders(
    status_filter: POStatus | None = Query(None, alias="status"),
    supplier_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=100),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=500),
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """List Purchase Orders for the current store."""
    pos, total = await PurchaseOrderService.list_pos(
        db,
        user.store_id,
        status=status_filter.value if status_filter else None,
        supplier_id=supplier_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return ApiResponse(
        data=[_po_to_list_item(po) for po in pos],
        meta=Meta(page=page, page_size=page_size, total_count=total, total_pages=math.ceil(total / page_size)),
    )


@router.post("", response_model=ApiResponse[POResponse], status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    body: POCreate,
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Create a new Purchase Order in ORDERED status with a store-scoped PO number."""
    po = await PurchaseOrderService.create_po(
        db,
        store_id=user.store_id,
        supplier_id=body.supplier_id,
        lines=[line.model_dump() for line in body.lines],
        notes=body.notes,
        order_date=body.order_date,
        expected_date=body.expected_date,
        created_by=user.id,
    )
    await db.commit()
    return ApiResponse(data=POResponse.model_validate(po))


@router.get("/{po_id}", response_model=ApiResponse[POResponse])
async def get_purchase_order(
    po_id: UUID,
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Get a single Purchase Order with all lines."""
    po = await PurchaseOrderService.get_po(db, user.store_id, po_id)
    return ApiResponse(data=POResponse.model_validate(po))


@router.patch("/{po_id}", response_model=ApiResponse[POResponse])
async def update_purchase_order(
    po_id: UUID,
    body: POUpdate,
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Update supplier or notes of a DRAFT or ORDERED Purchase Order."""
    po = await PurchaseOrderService.update_po(
        db, user.store_id, po_id, body.model_dump(exclude_unset=True)
    )
    await db.commit()
    return ApiResponse(data=POResponse.model_validate(po))


@router.patch("/{po_id}/cancel", response_model=ApiResponse[POResponse])
async def cancel_purchase_order(
    po_id: UUID,
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a Purchase Order (only allowed in DRAFT or ORDERED status)."""
    po = await PurchaseOrderService.cancel_po(db, user.store_id, po_id)
    await db.commit()
    return ApiResponse(data=POResponse.model_validate(po))


@router.post("/{po_id}/lines/{line_id}/receive", response_model=ApiResponse[POLineResponse])
async def receive_purchase_order_line(
    po_id: UUID,
    line_id: UUID,
    body: POLineReceive,
    user: CurrentUser = Depends(require_permission(PERM_PURCHASE_ORDERS_RECEIVE)),
    db: AsyncSession = Depends(get_db),
):
    """
    Receive goods against one Purchase Order line.
    Serialized products need one serialized item per unit received.
    Stock is added at the line's unit cost and the PO status is recomputed.
    """
    serialized_items = (
        [SerializedItem(**item.model_dump()) for item in body.serialized_items]
        if body.serialized_items is not None
        else None
    )
    line = await ReceivingService.receive_line(
        db,
        user.store_id,
        po_id,
        line_id,
        received_quantity=body.received_quantity,
        location_id=body.location_id,
        serialized_items=serialized_items,
        actor_id=user.id,
    )
    await db.commit()
    return ApiResponse(data=POLineResponse.model_validate(line))
