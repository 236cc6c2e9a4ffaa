from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpet_inventory.core.deps import get_db_session, get_session_factory
from carpet_inventory.schemas.common import ApiResponse, MessageResponse
from carpet_inventory.schemas.sales import (
    GstUpdate,
    OrderCreate,
    OrderItemCreate,
    OrderItemRead,
    OrderRead,
    OrderStats,
    OrderStatusUpdate,
    PaymentUpdate,
    SettlementRead,
    UnitSelection,
)
from carpet_inventory.services.orders import SETTLING_STATUSES, OrderService
from carpet_inventory.services.settlement import SettlementService, run_settlement

router = APIRouter(prefix="/orders", tags=["Orders"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[OrderRead]],
    summary="List orders",
    description="List orders by order date, newest first.",
)
async def list_orders(
    session: AsyncSession = Depends(get_db_session),
    status_: Optional[str] = Query(None, alias="status", description="Filter by order status"),
    customer_id: Optional[str] = Query(None, description="Filter by customer id"),
    search: Optional[str] = Query(None, description="Order number or customer name (substring)"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[OrderRead]]:
    rows = await OrderService(session).list_orders(
        status=status_, customer_id=customer_id, search=search, limit=limit, offset=offset
    )
    return ApiResponse(data=[OrderRead.model_validate(o) for o in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[OrderRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description=(
        "Create a pending order. Units listed per line are reserved in the same "
        "transaction; a unit that is no longer available fails the whole request with 409."
    ),
)
async def create_order(
    payload: OrderCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.create_order(payload)
    await svc.commit()
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=ApiResponse[OrderStats],
    summary="Order statistics",
    description="Order counts per status and revenue totals of non-cancelled orders.",
)
async def order_stats(session: AsyncSession = Depends(get_db_session)) -> ApiResponse[OrderStats]:
    stats = await OrderService(session).order_stats()
    return ApiResponse(data=OrderStats(**stats))


# PUBLIC_INTERFACE
@router.get(
    "/{order_id}",
    response_model=ApiResponse[OrderRead],
    summary="Get order",
    description="Return one order with its lines.",
)
async def get_order(
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    order = await OrderService(session).get_order(order_id)
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.put(
    "/{order_id}/status",
    response_model=ApiResponse[OrderRead],
    summary="Change order status",
    description=(
        "Move the order forward in the workflow or cancel it. Dispatch and delivery "
        "sell the selected units immediately and settle bulk stock in the background."
    ),
)
async def update_order_status(
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.update_order_status(order_id, payload.status, payload.notes)
    await svc.commit()
    if order.status in SETTLING_STATUSES:
        background_tasks.add_task(run_settlement, factory, order.id)
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.put(
    "/{order_id}/items/{item_id}/individual-products",
    response_model=ApiResponse[OrderItemRead],
    summary="Select units for a line",
    description="Replace the units allocated to an order line; dropped units are released.",
)
async def select_units(
    payload: UnitSelection,
    order_id: str = Path(..., description="Order id"),
    item_id: str = Path(..., description="Order item id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderItemRead]:
    svc = OrderService(session)
    item = await svc.select_units(order_id, item_id, payload.individual_product_ids)
    await svc.commit()
    return ApiResponse(data=OrderItemRead.model_validate(item))


# PUBLIC_INTERFACE
@router.post(
    "/{order_id}/items",
    response_model=ApiResponse[OrderRead],
    status_code=status.HTTP_201_CREATED,
    summary="Add order line",
    description="Append a line to an order that has not been dispatched.",
)
async def add_item(
    payload: OrderItemCreate,
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.add_item(order_id, payload)
    await svc.commit()
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.delete(
    "/{order_id}/items/{item_id}",
    response_model=ApiResponse[OrderRead],
    summary="Remove order line",
    description="Remove a line and release its units and material reservation.",
)
async def remove_item(
    order_id: str = Path(..., description="Order id"),
    item_id: str = Path(..., description="Order item id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.remove_item(order_id, item_id)
    await svc.commit()
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.put(
    "/{order_id}/payment",
    response_model=ApiResponse[OrderRead],
    summary="Record payment",
    description="Set the amount paid so far; outstanding amount is recomputed.",
)
async def update_payment(
    payload: PaymentUpdate,
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.update_payment(order_id, payload.paid_amount)
    await svc.commit()
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.put(
    "/{order_id}/gst",
    response_model=ApiResponse[OrderRead],
    summary="Update GST",
    description="Change the GST rate or inclusion flag; totals are recomputed.",
)
async def update_gst(
    payload: GstUpdate,
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[OrderRead]:
    svc = OrderService(session)
    order = await svc.update_gst(order_id, payload.gst_rate, payload.gst_included)
    await svc.commit()
    return ApiResponse(data=OrderRead.model_validate(order))


# PUBLIC_INTERFACE
@router.delete(
    "/{order_id}",
    response_model=ApiResponse[MessageResponse],
    summary="Delete order",
    description="Delete an order that was never dispatched, releasing what it held.",
)
async def delete_order(
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MessageResponse]:
    svc = OrderService(session)
    await svc.delete_order(order_id)
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Order deleted", details={"id": order_id}))


# PUBLIC_INTERFACE
@router.get(
    "/{order_id}/settlement",
    response_model=ApiResponse[SettlementRead],
    summary="Stock settlement of an order",
    description="State of the bulk stock deduction owed by a dispatched or delivered order.",
)
async def get_settlement(
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SettlementRead]:
    row = await SettlementService(session).get(order_id)
    return ApiResponse(data=SettlementRead.model_validate(row))
