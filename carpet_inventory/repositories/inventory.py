from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.inventory import RawMaterial, StockMovement, StockSettlement
from .base import BaseRepository


class RawMaterialRepository(BaseRepository):
    """Repository for raw materials."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_material(self, material_id: str, *, for_update: bool = False) -> Optional[RawMaterial]:
        stmt = select(RawMaterial).where(RawMaterial.id == material_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_material_by_name(self, name: str, *, for_update: bool = False) -> Optional[RawMaterial]:
        """Oldest material with this exact name; names are not unique."""
        stmt = (
            select(RawMaterial)
            .where(RawMaterial.name == name)
            .order_by(RawMaterial.created_at, RawMaterial.id)
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_materials(self, material_ids: Iterable[str], *, for_update: bool = False) -> Dict[str, RawMaterial]:
        ids = list(set(material_ids))
        if not ids:
            return {}
        stmt = select(RawMaterial).where(RawMaterial.id.in_(ids)).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        return {m.id: m for m in await self.scalars(stmt)}

    async def list_materials(
        self,
        *,
        search: Optional[str],
        category: Optional[str],
        status: Optional[str],
        limit: int,
        offset: int,
    ) -> List[RawMaterial]:
        stmt = select(RawMaterial)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(RawMaterial.name.ilike(like), RawMaterial.brand.ilike(like)))
        if category:
            stmt = stmt.where(RawMaterial.category == category)
        if status:
            stmt = stmt.where(RawMaterial.status == status)
        stmt = stmt.order_by(RawMaterial.name, RawMaterial.id).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_reorder_candidates(self) -> List[RawMaterial]:
        stmt = (
            select(RawMaterial)
            .where(RawMaterial.current_stock <= RawMaterial.reorder_point)
            .order_by(RawMaterial.current_stock, RawMaterial.name)
        )
        return list(await self.scalars(stmt))

    async def status_counts(self) -> Dict[str, int]:
        stmt = select(RawMaterial.status, func.count()).group_by(RawMaterial.status)
        return {status: int(count) for status, count in (await self.execute(stmt)).all()}


class StockMovementRepository(BaseRepository):
    """Append-only access to stock movements: insert and read, nothing else."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def record(self, movement: StockMovement) -> StockMovement:
        await self.add(movement)
        return movement

    async def list_movements(
        self,
        *,
        material_id: Optional[str],
        reference_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[StockMovement]:
        stmt = select(StockMovement)
        if material_id:
            stmt = stmt.where(StockMovement.material_id == material_id)
        if reference_id:
            stmt = stmt.where(StockMovement.reference_id == reference_id)
        stmt = stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))


class StockSettlementRepository(BaseRepository):
    """Repository for the stock settlement outbox."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, order_id: str, *, for_update: bool = False) -> Optional[StockSettlement]:
        stmt = select(StockSettlement).where(StockSettlement.order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def list_retryable(self, *, max_attempts: int, limit: int) -> List[StockSettlement]:
        stmt = (
            select(StockSettlement)
            .where(
                StockSettlement.state.in_(("pending", "failed")),
                StockSettlement.attempts < max_attempts,
            )
            .order_by(StockSettlement.created_at)
            .limit(limit)
        )
        return list(await self.scalars(stmt))

    async def list_settlements(self, *, state: Optional[str], limit: int, offset: int) -> List[StockSettlement]:
        stmt = select(StockSettlement)
        if state:
            stmt = stmt.where(StockSettlement.state == state)
        stmt = stmt.order_by(StockSettlement.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))
