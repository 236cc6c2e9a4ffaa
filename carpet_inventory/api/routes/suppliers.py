from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.common import ApiResponse
from carpet_inventory.schemas.procurement import SupplierCreate, SupplierRead
from carpet_inventory.services.catalog import CatalogService

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[SupplierRead]],
    summary="List suppliers",
    description="Return suppliers ordered by name.",
)
async def list_suppliers(
    session: AsyncSession = Depends(get_db_session),
    search: Optional[str] = Query(None, description="Filter by name or contact (substring)"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[SupplierRead]]:
    rows = await CatalogService(session).list_suppliers(search=search, limit=limit, offset=offset)
    return ApiResponse(data=[SupplierRead.model_validate(s) for s in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[SupplierRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create supplier",
    description="Create a supplier. Names are unique ignoring case (409 on duplicates).",
)
async def create_supplier(
    payload: SupplierCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SupplierRead]:
    svc = CatalogService(session)
    supplier = await svc.create_supplier(payload)
    await svc.commit()
    return ApiResponse(data=SupplierRead.model_validate(supplier))


# PUBLIC_INTERFACE
@router.get(
    "/{supplier_id}",
    response_model=ApiResponse[SupplierRead],
    summary="Get supplier",
    description="Return one supplier with its running performance rating.",
)
async def get_supplier(
    supplier_id: str = Path(..., description="Supplier id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SupplierRead]:
    supplier = await CatalogService(session).get_supplier(supplier_id)
    return ApiResponse(data=SupplierRead.model_validate(supplier))
