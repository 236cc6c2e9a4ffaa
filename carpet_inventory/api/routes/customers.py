from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.schemas.common import ApiResponse
from carpet_inventory.schemas.sales import CustomerCreate, CustomerRead
from carpet_inventory.services.catalog import CatalogService

router = APIRouter(prefix="/customers", tags=["Customers"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[CustomerRead]],
    summary="List customers",
    description="List customers ordered by name.",
)
async def list_customers(
    session: AsyncSession = Depends(get_db_session),
    search: Optional[str] = Query(None, description="Filter by name, email or phone (substring)"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[CustomerRead]]:
    rows = await CatalogService(session).list_customers(search=search, limit=limit, offset=offset)
    return ApiResponse(data=[CustomerRead.model_validate(c) for c in rows])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[CustomerRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
    description="Create a customer. A negative credit limit is rejected with 400.",
)
async def create_customer(
    payload: CustomerCreate,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[CustomerRead]:
    svc = CatalogService(session)
    customer = await svc.create_customer(payload)
    await svc.commit()
    return ApiResponse(data=CustomerRead.model_validate(customer))


# PUBLIC_INTERFACE
@router.get(
    "/{customer_id}",
    response_model=ApiResponse[CustomerRead],
    summary="Get customer",
    description="Return one customer with order totals.",
)
async def get_customer(
    customer_id: str = Path(..., description="Customer id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[CustomerRead]:
    customer = await CatalogService(session).get_customer(customer_id)
    return ApiResponse(data=CustomerRead.model_validate(customer))
