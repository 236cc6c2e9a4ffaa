from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.common import ApiResponse, MessageResponse
from carpet_inventory.schemas.production import (
    BatchCancel,
    BatchCompletion,
    MaterialConsumptionCreate,
    ProductionBatchCreate,
    ProductionBatchRead,
)
from carpet_inventory.services.production import ProductionService

router = APIRouter(prefix="/production/batches", tags=["Production"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[ProductionBatchRead]],
    summary="List production batches",
    description="List batches newest first, optionally filtered by status or product.",
)
async def list_batches(
    session: AsyncSession = Depends(get_db_session),
    status_: Optional[str] = Query(None, alias="status", description="Filter by batch status"),
    product_id: Optional[str] = Query(None, description="Filter by produced product"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[ProductionBatchRead]]:
    rows = await ProductionService(session).list_batches(
        status=status_, product_id=product_id, limit=limit, offset=offset
    )
    return ApiResponse(data=[ProductionBatchRead.model_validate(b) for b in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[ProductionBatchRead],
    status_code=status.HTTP_201_CREATED,
    summary="Plan production batch",
    description="Create a planned batch with the materials and units it will consume. No stock moves yet.",
)
async def create_batch(
    payload: ProductionBatchCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.create_batch(payload)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.get(
    "/{batch_id}",
    response_model=ApiResponse[ProductionBatchRead],
    summary="Get production batch",
    description="Return one batch with its material consumptions.",
)
async def get_batch(
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    batch = await ProductionService(session).get_batch(batch_id)
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.post(
    "/{batch_id}/consumptions",
    response_model=ApiResponse[ProductionBatchRead],
    status_code=status.HTTP_201_CREATED,
    summary="Add material consumption",
    description="Record raw material or units an open batch will use up.",
)
async def add_consumption(
    payload: MaterialConsumptionCreate,
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.add_consumption(batch_id, payload)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.delete(
    "/{batch_id}/consumptions/{consumption_id}",
    response_model=ApiResponse[ProductionBatchRead],
    summary="Remove material consumption",
    description="Drop a planned consumption from an open batch.",
)
async def remove_consumption(
    batch_id: str = Path(..., description="Batch id"),
    consumption_id: str = Path(..., description="Consumption id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.remove_consumption(batch_id, consumption_id)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.post(
    "/{batch_id}/start",
    response_model=ApiResponse[ProductionBatchRead],
    summary="Start production batch",
)
async def start_batch(
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.start_batch(batch_id)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.post(
    "/{batch_id}/complete",
    response_model=ApiResponse[ProductionBatchRead],
    summary="Complete production batch",
    description=(
        "Create the produced units (or bulk quantity), mark consumed units used and deduct raw "
        "material, all in one transaction. A shortage or a unit that is no longer available "
        "fails the whole request and leaves the batch open."
    ),
)
async def complete_batch(
    payload: BatchCompletion,
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.complete_batch(batch_id, payload)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.post(
    "/{batch_id}/cancel",
    response_model=ApiResponse[ProductionBatchRead],
    summary="Cancel production batch",
    description="Cancel an open batch; nothing was booked, so no stock changes.",
)
async def cancel_batch(
    payload: BatchCancel,
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductionBatchRead]:
    svc = ProductionService(session)
    batch = await svc.cancel_batch(batch_id, payload.reason)
    await svc.commit()
    return ApiResponse(data=ProductionBatchRead.model_validate(batch))


# PUBLIC_INTERFACE
@router.delete(
    "/{batch_id}",
    response_model=ApiResponse[MessageResponse],
    summary="Delete production batch",
    description="Delete a batch that never completed.",
)
async def delete_batch(
    batch_id: str = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MessageResponse]:
    svc = ProductionService(session)
    await svc.delete_batch(batch_id)
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Production batch deleted", details={"id": batch_id}))
