from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.production import MaterialConsumption, ProductionBatch
from .base import BaseRepository


class ProductionBatchRepository(BaseRepository):
    """Repository for production batches and their consumptions."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_batch(self, batch_id: str, *, for_update: bool = False) -> Optional[ProductionBatch]:
        stmt = select(ProductionBatch).where(ProductionBatch.id == batch_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_by_batch_number(self, batch_number: str) -> Optional[ProductionBatch]:
        stmt = select(ProductionBatch).where(ProductionBatch.batch_number == batch_number)
        return await self.scalar_one_or_none(stmt)

    async def list_batches(
        self, *, status: Optional[str], product_id: Optional[str], limit: int, offset: int
    ) -> List[ProductionBatch]:
        stmt = select(ProductionBatch)
        if status:
            stmt = stmt.where(ProductionBatch.status == status)
        if product_id:
            stmt = stmt.where(ProductionBatch.product_id == product_id)
        stmt = stmt.order_by(ProductionBatch.created_at.desc(), ProductionBatch.id.desc())
        stmt = stmt.offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def units_claimed_by_open_batches(self) -> List[str]:
        """Unit ids named by planned consumptions of any batch still open."""
        stmt = (
            select(MaterialConsumption.individual_product_ids)
            .join(ProductionBatch, ProductionBatch.id == MaterialConsumption.batch_id)
            .where(
                MaterialConsumption.status == "planned",
                ProductionBatch.status.in_(("planned", "in_progress")),
            )
        )
        return [unit_id for ids in await self.scalars(stmt) for unit_id in ids or []]
