from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.catalog import (
    ProductCreate,
    ProductRead,
    ProductUpdate,
    TrackingToggle,
    UnitBatchCreate,
    UnitRead,
    UnitStats,
)
from carpet_inventory.schemas.common import ApiResponse, MessageResponse
from carpet_inventory.services.catalog import CatalogService
from carpet_inventory.services.units import UnitService

router = APIRouter(prefix="/products", tags=["Products"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[ProductRead]],
    summary="List products",
    description="List products, newest first, with optional search and filters.",
)
async def list_products(
    session: AsyncSession = Depends(get_db_session),
    search: Optional[str] = Query(None, description="Filter by name, id or QR code (substring)"),
    category: Optional[str] = Query(None, description="Filter by category"),
    status_: Optional[str] = Query(None, alias="status", description="Filter by stock status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[ProductRead]]:
    rows = await CatalogService(session).list_products(
        search=search, category=category, status=status_, limit=limit, offset=offset
    )
    return ApiResponse(data=[ProductRead.model_validate(p) for p in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[ProductRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
    description="Create a product; id and QR code are allocated by the server.",
)
async def create_product(
    payload: ProductCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductRead]:
    svc = CatalogService(session)
    product = await svc.create_product(payload)
    await svc.commit()
    return ApiResponse(data=ProductRead.model_validate(product))


# PUBLIC_INTERFACE
@router.post(
    "/sync-stock",
    response_model=ApiResponse[MessageResponse],
    summary="Recompute all product stock",
    description="Repair the cached stock counters of every product from its units.",
)
async def sync_all_stock(session: AsyncSession = Depends(get_db_session)) -> ApiResponse[MessageResponse]:
    svc = CatalogService(session)
    count = await svc.sync_stock()
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Stock recomputed", details={"products": count}))


# PUBLIC_INTERFACE
@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductRead],
    summary="Get product",
    description="Return one product by id.",
)
async def get_product(
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductRead]:
    product = await CatalogService(session).get_product(product_id)
    return ApiResponse(data=ProductRead.model_validate(product))


# PUBLIC_INTERFACE
@router.patch(
    "/{product_id}",
    response_model=ApiResponse[ProductRead],
    summary="Update product",
    description="Partially update a product. Stock counters are derived and not writable.",
)
async def update_product(
    payload: ProductUpdate,
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductRead]:
    svc = CatalogService(session)
    product = await svc.update_product(product_id, payload)
    await svc.commit()
    return ApiResponse(data=ProductRead.model_validate(product))


# PUBLIC_INTERFACE
@router.put(
    "/{product_id}/tracking",
    response_model=ApiResponse[ProductRead],
    summary="Toggle individual tracking",
    description="Enable or disable per-unit tracking. Disabling is refused while units exist.",
)
async def set_tracking(
    payload: TrackingToggle,
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductRead]:
    svc = CatalogService(session)
    product = await svc.set_tracking(product_id, payload.enabled)
    await svc.commit()
    return ApiResponse(data=ProductRead.model_validate(product))


# PUBLIC_INTERFACE
@router.delete(
    "/{product_id}",
    response_model=ApiResponse[MessageResponse],
    summary="Delete product",
    description="Delete a product that has no units and is not referenced by any order.",
)
async def delete_product(
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MessageResponse]:
    svc = CatalogService(session)
    await svc.delete_product(product_id)
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Product deleted", details={"id": product_id}))


# PUBLIC_INTERFACE
@router.post(
    "/{product_id}/sync-stock",
    response_model=ApiResponse[ProductRead],
    summary="Recompute product stock",
    description="Recompute current_stock, unit count and status of one product.",
)
async def sync_product_stock(
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProductRead]:
    svc = CatalogService(session)
    await svc.sync_stock(product_id)
    await svc.commit()
    return ApiResponse(data=ProductRead.model_validate(await svc.get_product(product_id)))


# PUBLIC_INTERFACE
@router.post(
    "/{product_id}/individual-products",
    response_model=ApiResponse[List[UnitRead]],
    status_code=status.HTTP_201_CREATED,
    summary="Register produced units",
    description="Create available units for a tracked product after production completion.",
)
async def create_units(
    payload: UnitBatchCreate,
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[UnitRead]]:
    svc = UnitService(session)
    units = await svc.create_units(product_id, payload)
    await svc.commit()
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.get(
    "/{product_id}/individual-products",
    response_model=ApiResponse[List[UnitRead]],
    summary="List units of a product",
    description="List the individual units of a product in creation order.",
)
async def list_product_units(
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
    status_: Optional[str] = Query(None, alias="status", description="Filter by unit status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[UnitRead]]:
    units = await UnitService(session).list_units(product_id=product_id, status=status_, limit=limit, offset=offset)
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.get(
    "/{product_id}/individual-products/stats",
    response_model=ApiResponse[UnitStats],
    summary="Unit counts by status",
    description="Counts of a product's units per lifecycle status.",
)
async def product_unit_stats(
    product_id: str = Path(..., description="Product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnitStats]:
    stats = await UnitService(session).unit_stats(product_id)
    return ApiResponse(data=UnitStats(**stats))
