from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.core.errors import ValidationError
from carpet_inventory.schemas.catalog import UnitBulkAction, UnitRead, UnitStatusChange, UnitUpdate
from carpet_inventory.schemas.common import ApiResponse, MessageResponse
from carpet_inventory.services.units import UnitService

router = APIRouter(prefix="/individual-products", tags=["Individual Products"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[UnitRead]],
    summary="List units",
    description="List individual units across products with optional filters.",
)
async def list_units(
    session: AsyncSession = Depends(get_db_session),
    product_id: Optional[str] = Query(None, description="Filter by product id"),
    status_: Optional[str] = Query(None, alias="status", description="Filter by unit status"),
    order_id: Optional[str] = Query(None, description="Filter by holding order"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[UnitRead]]:
    units = await UnitService(session).list_units(
        product_id=product_id, status=status_, order_id=order_id, limit=limit, offset=offset
    )
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.get(
    "/qr/{qr_code}",
    response_model=ApiResponse[UnitRead],
    summary="Look up unit by QR code",
    description="Resolve a scanned QR code to its unit.",
)
async def get_unit_by_qr(
    qr_code: str = Path(..., description="QR code printed on the unit"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnitRead]:
    unit = await UnitService(session).get_unit_by_qr(qr_code)
    return ApiResponse(data=UnitRead.model_validate(unit))


# PUBLIC_INTERFACE
@router.post(
    "/reserve",
    response_model=ApiResponse[List[UnitRead]],
    summary="Reserve units",
    description="Reserve available units for an order, all or nothing. Taken units yield 409.",
)
async def reserve_units(
    payload: UnitBulkAction,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[UnitRead]]:
    if not payload.order_id:
        raise ValidationError("order_id is required to reserve units")
    svc = UnitService(session)
    units = await svc.reserve(payload.individual_product_ids, payload.order_id)
    await svc.commit()
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.post(
    "/release",
    response_model=ApiResponse[MessageResponse],
    summary="Release units",
    description="Return reserved units to available; other statuses are left untouched.",
)
async def release_units(
    payload: UnitBulkAction,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MessageResponse]:
    svc = UnitService(session)
    released = await svc.release(payload.individual_product_ids, payload.order_id)
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Units released", details={"released": released}))


# PUBLIC_INTERFACE
@router.post(
    "/damaged",
    response_model=ApiResponse[List[UnitRead]],
    summary="Mark units damaged",
    description="Retire available units as damaged.",
)
async def mark_damaged(
    payload: UnitBulkAction,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[UnitRead]]:
    svc = UnitService(session)
    units = await svc.mark_damaged(payload.individual_product_ids, payload.notes)
    await svc.commit()
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.post(
    "/used",
    response_model=ApiResponse[List[UnitRead]],
    summary="Mark units used",
    description="Retire available units as consumed internally.",
)
async def mark_used(
    payload: UnitBulkAction,
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[UnitRead]]:
    svc = UnitService(session)
    units = await svc.mark_used(payload.individual_product_ids, payload.notes)
    await svc.commit()
    return ApiResponse(data=[UnitRead.model_validate(u) for u in units])


# PUBLIC_INTERFACE
@router.get(
    "/{unit_id}",
    response_model=ApiResponse[UnitRead],
    summary="Get unit",
    description="Return one individual unit by id.",
)
async def get_unit(
    unit_id: str = Path(..., description="Individual product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnitRead]:
    unit = await UnitService(session).get_unit(unit_id)
    return ApiResponse(data=UnitRead.model_validate(unit))


# PUBLIC_INTERFACE
@router.patch(
    "/{unit_id}",
    response_model=ApiResponse[UnitRead],
    summary="Update unit details",
    description="Edit descriptive fields of a unit. Status changes use the status endpoint.",
)
async def update_unit(
    payload: UnitUpdate,
    unit_id: str = Path(..., description="Individual product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnitRead]:
    svc = UnitService(session)
    unit = await svc.update_unit(unit_id, payload)
    await svc.commit()
    return ApiResponse(data=UnitRead.model_validate(unit))


# PUBLIC_INTERFACE
@router.put(
    "/{unit_id}/status",
    response_model=ApiResponse[UnitRead],
    summary="Change unit status",
    description="Apply one lifecycle transition. Illegal transitions yield 409.",
)
async def change_unit_status(
    payload: UnitStatusChange,
    unit_id: str = Path(..., description="Individual product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnitRead]:
    svc = UnitService(session)
    unit = await svc.change_status(unit_id, payload.status, payload.order_id)
    await svc.commit()
    return ApiResponse(data=UnitRead.model_validate(unit))


# PUBLIC_INTERFACE
@router.delete(
    "/{unit_id}",
    response_model=ApiResponse[MessageResponse],
    summary="Purge unit",
    description="Administrative hard delete of a unit that is not reserved.",
)
async def purge_unit(
    unit_id: str = Path(..., description="Individual product id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MessageResponse]:
    svc = UnitService(session)
    await svc.purge_unit(unit_id)
    await svc.commit()
    return ApiResponse(data=MessageResponse(message="Unit purged", details={"id": unit_id}))
