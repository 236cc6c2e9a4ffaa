from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.common import ApiResponse
from carpet_inventory.schemas.inventory import (
    RawMaterialCreate,
    RawMaterialRead,
    RawMaterialStats,
    RawMaterialUpdate,
    StockAdjustment,
    StockMovementRead,
)
from carpet_inventory.services.raw_materials import RawMaterialService

router = APIRouter(prefix="/raw-materials", tags=["Raw Materials"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[RawMaterialRead]],
    summary="List raw materials",
    description="List raw materials ordered by name with optional filters.",
)
async def list_materials(
    session: AsyncSession = Depends(get_db_session),
    search: Optional[str] = Query(None, description="Filter by name or brand (substring)"),
    category: Optional[str] = Query(None, description="Filter by category"),
    status_: Optional[str] = Query(None, alias="status", description="Filter by stock status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[RawMaterialRead]]:
    rows = await RawMaterialService(session).list_materials(
        search=search, category=category, status=status_, limit=limit, offset=offset
    )
    return ApiResponse(data=[RawMaterialRead.model_validate(m) for m in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[RawMaterialRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create raw material",
    description="Create a raw material; status and total value are derived.",
)
async def create_material(
    payload: RawMaterialCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[RawMaterialRead]:
    svc = RawMaterialService(session)
    material = await svc.create(payload)
    await svc.commit()
    return ApiResponse(data=RawMaterialRead.model_validate(material))


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=ApiResponse[RawMaterialStats],
    summary="Raw material statistics",
    description="Counts of raw materials per stock status.",
)
async def material_stats(session: AsyncSession = Depends(get_db_session)) -> ApiResponse[RawMaterialStats]:
    stats = await RawMaterialService(session).stats()
    return ApiResponse(data=RawMaterialStats(**stats))


# PUBLIC_INTERFACE
@router.get(
    "/reorder",
    response_model=ApiResponse[List[RawMaterialRead]],
    summary="Reorder candidates",
    description="Materials whose stock is at or below their reorder point.",
)
async def reorder_candidates(session: AsyncSession = Depends(get_db_session)) -> ApiResponse[List[RawMaterialRead]]:
    rows = await RawMaterialService(session).reorder_candidates()
    return ApiResponse(data=[RawMaterialRead.model_validate(m) for m in rows])


# PUBLIC_INTERFACE
@router.get(
    "/{material_id}",
    response_model=ApiResponse[RawMaterialRead],
    summary="Get raw material",
    description="Return one raw material by id.",
)
async def get_material(
    material_id: str = Path(..., description="Raw material id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[RawMaterialRead]:
    material = await RawMaterialService(session).get(material_id)
    return ApiResponse(data=RawMaterialRead.model_validate(material))


# PUBLIC_INTERFACE
@router.patch(
    "/{material_id}",
    response_model=ApiResponse[RawMaterialRead],
    summary="Update raw material",
    description="Partially update a raw material. Stock changes go through the adjust endpoint.",
)
async def update_material(
    payload: RawMaterialUpdate,
    material_id: str = Path(..., description="Raw material id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[RawMaterialRead]:
    svc = RawMaterialService(session)
    material = await svc.update(material_id, payload)
    await svc.commit()
    return ApiResponse(data=RawMaterialRead.model_validate(material))


# PUBLIC_INTERFACE
@router.post(
    "/{material_id}/adjust",
    response_model=ApiResponse[RawMaterialRead],
    summary="Adjust stock",
    description="Apply a signed stock correction and record it as a stock movement.",
)
async def adjust_stock(
    payload: StockAdjustment,
    material_id: str = Path(..., description="Raw material id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[RawMaterialRead]:
    svc = RawMaterialService(session)
    material = await svc.adjust_stock(material_id, payload)
    await svc.commit()
    return ApiResponse(data=RawMaterialRead.model_validate(material))


# PUBLIC_INTERFACE
@router.get(
    "/{material_id}/movements",
    response_model=ApiResponse[List[StockMovementRead]],
    summary="Stock movement history",
    description="Movements of one raw material, newest first.",
)
async def stock_history(
    material_id: str = Path(..., description="Raw material id"),
    session: AsyncSession = Depends(get_db_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[StockMovementRead]]:
    rows = await RawMaterialService(session).stock_history(material_id, limit=limit, offset=offset)
    return ApiResponse(data=[StockMovementRead.model_validate(m) for m in rows])
