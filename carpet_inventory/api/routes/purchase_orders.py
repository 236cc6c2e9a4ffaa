from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.common import ApiResponse
from carpet_inventory.schemas.procurement import (
    PurchaseOrderApprove,
    PurchaseOrderCancel,
    PurchaseOrderCreate,
    PurchaseOrderDeliver,
    PurchaseOrderRead,
    PurchaseOrderStats,
    PurchaseOrderStatusUpdate,
)
from carpet_inventory.services.purchase_orders import PurchaseOrderService

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[PurchaseOrderRead]],
    summary="List purchase orders",
    description="Return purchase orders ordered by order date desc.",
)
async def list_purchase_orders(
    session: AsyncSession = Depends(get_db_session),
    supplier_id: Optional[str] = Query(None, description="Filter by supplier id"),
    status_: Optional[str] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[PurchaseOrderRead]]:
    rows = await PurchaseOrderService(session).list_purchase_orders(
        supplier_id=supplier_id, status=status_, limit=limit, offset=offset
    )
    return ApiResponse(data=[PurchaseOrderRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[PurchaseOrderRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create purchase order",
    description="Create a draft or pending purchase order with lines bound to raw materials.",
)
async def create_purchase_order(
    payload: PurchaseOrderCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    svc = PurchaseOrderService(session)
    po = await svc.create(payload)
    await svc.commit()
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=ApiResponse[PurchaseOrderStats],
    summary="Purchase order statistics",
    description="Counts per status and total value of all purchase orders.",
)
async def purchase_order_stats(session: AsyncSession = Depends(get_db_session)) -> ApiResponse[PurchaseOrderStats]:
    stats = await PurchaseOrderService(session).stats()
    return ApiResponse(data=PurchaseOrderStats(**stats))


# PUBLIC_INTERFACE
@router.get(
    "/{po_id}",
    response_model=ApiResponse[PurchaseOrderRead],
    summary="Get purchase order",
    description="Return one purchase order with lines and status history.",
)
async def get_purchase_order(
    po_id: str = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    po = await PurchaseOrderService(session).get(po_id)
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))


# PUBLIC_INTERFACE
@router.post(
    "/{po_id}/approve",
    response_model=ApiResponse[PurchaseOrderRead],
    summary="Approve purchase order",
    description="Approve a draft or pending order; its materials are marked in-transit.",
)
async def approve_purchase_order(
    payload: PurchaseOrderApprove,
    po_id: str = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    svc = PurchaseOrderService(session)
    po = await svc.approve(po_id, payload.approved_by, payload.approval_notes)
    await svc.commit()
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))


# PUBLIC_INTERFACE
@router.post(
    "/{po_id}/deliver",
    response_model=ApiResponse[PurchaseOrderRead],
    summary="Mark purchase order delivered",
    description="Book every line into raw material stock and update the supplier rating.",
)
async def deliver_purchase_order(
    payload: PurchaseOrderDeliver,
    po_id: str = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    svc = PurchaseOrderService(session)
    po = await svc.mark_delivered(po_id, rating=payload.rating, operator=payload.operator, notes=payload.notes)
    await svc.commit()
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))


# PUBLIC_INTERFACE
@router.post(
    "/{po_id}/cancel",
    response_model=ApiResponse[PurchaseOrderRead],
    summary="Cancel purchase order",
    description="Cancel an order that was not delivered; in-transit materials get their stock status back.",
)
async def cancel_purchase_order(
    payload: PurchaseOrderCancel,
    po_id: str = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    svc = PurchaseOrderService(session)
    po = await svc.cancel(po_id, payload.reason)
    await svc.commit()
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))


# PUBLIC_INTERFACE
@router.put(
    "/{po_id}/status",
    response_model=ApiResponse[PurchaseOrderRead],
    summary="Change purchase order status",
    description="Generic transition; approved, delivered and cancelled run their workflows.",
)
async def update_purchase_order_status(
    payload: PurchaseOrderStatusUpdate,
    po_id: str = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PurchaseOrderRead]:
    svc = PurchaseOrderService(session)
    po = await svc.update_status(
        po_id, payload.status, notes=payload.notes, approved_by=payload.approved_by, rating=payload.rating
    )
    await svc.commit()
    return ApiResponse(data=PurchaseOrderRead.model_validate(po))
