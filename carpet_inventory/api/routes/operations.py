from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.deps import get_db_session
from carpet_inventory.core.errors import NotFoundError
from carpet_inventory.schemas.common import ApiResponse, SequenceRead
from carpet_inventory.schemas.sales import SettlementRead
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.settlement import SettlementService

router = APIRouter(prefix="/operations", tags=["Operations"])


# PUBLIC_INTERFACE
@router.get(
    "/sequences/{prefix}",
    response_model=ApiResponse[List[SequenceRead]],
    summary="Sequence counters for a prefix",
    description="All counters of an identifier prefix, newest scope first.",
)
async def list_sequences(
    prefix: str = Path(..., description="Identifier prefix, e.g. PRO or ORD"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[SequenceRead]]:
    rows = await SequenceAllocator(session).sequences_for_prefix(prefix.upper())
    return ApiResponse(data=[SequenceRead.model_validate(r) for r in rows])


# PUBLIC_INTERFACE
@router.get(
    "/sequences/{prefix}/current",
    response_model=ApiResponse[SequenceRead],
    summary="Current sequence counter",
    description="Counter of a prefix for one scope; today's date scope when none is given.",
)
async def sequence_info(
    prefix: str = Path(..., description="Identifier prefix"),
    date_str: Optional[str] = Query(None, description="YYMMDD or 'global'"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SequenceRead]:
    row = await SequenceAllocator(session).sequence_info(prefix.upper(), date_str)
    if row is None:
        raise NotFoundError("Sequence not found", details={"prefix": prefix, "date_str": date_str})
    return ApiResponse(data=SequenceRead.model_validate(row))


# PUBLIC_INTERFACE
@router.get(
    "/settlements",
    response_model=ApiResponse[List[SettlementRead]],
    summary="List stock settlements",
    description="Stock settlements of dispatched orders, optionally filtered by state.",
)
async def list_settlements(
    session: AsyncSession = Depends(get_db_session),
    state: Optional[str] = Query(None, description="pending, completed or failed"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> ApiResponse[List[SettlementRead]]:
    rows = await SettlementService(session).list_settlements(state=state, limit=limit, offset=offset)
    return ApiResponse(data=[SettlementRead.model_validate(r) for r in rows])


# PUBLIC_INTERFACE
@router.post(
    "/settlements/retry",
    response_model=ApiResponse[List[SettlementRead]],
    summary="Retry pending settlements",
    description="Run every pending or failed settlement below the attempt limit.",
)
async def retry_settlements(
    session: AsyncSession = Depends(get_db_session),
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse[List[SettlementRead]]:
    rows = await SettlementService(session).process_pending(limit=limit)
    return ApiResponse(data=[SettlementRead.model_validate(r) for r in rows])


# PUBLIC_INTERFACE
@router.post(
    "/settlements/{order_id}/retry",
    response_model=ApiResponse[SettlementRead],
    summary="Settle one order",
    description="Run the stock settlement of one order now, regardless of its attempt count.",
)
async def retry_settlement(
    order_id: str = Path(..., description="Order id"),
    session: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SettlementRead]:
    row = await SettlementService(session).settle(order_id)
    return ApiResponse(data=SettlementRead.model_validate(row))
