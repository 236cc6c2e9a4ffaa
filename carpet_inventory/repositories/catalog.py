from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.catalog import IndividualProduct, Product
from carpet_inventory.db.models.sales import OrderItem
from .base import BaseRepository


class ProductRepository(BaseRepository):
    """Repository for products (SKUs)."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_product(self, product_id: str, *, for_update: bool = False) -> Optional[Product]:
        stmt = select(Product).where(Product.id == product_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_products(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = await self.scalars(select(Product).where(Product.id.in_(ids)))
        return {p.id: p for p in rows}

    async def list_products(
        self,
        *,
        search: Optional[str],
        category: Optional[str],
        status: Optional[str],
        limit: int,
        offset: int,
    ) -> List[Product]:
        stmt = select(Product)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Product.name.ilike(like), Product.id.ilike(like), Product.qr_code.ilike(like)))
        if category:
            stmt = stmt.where(Product.category == category)
        if status:
            stmt = stmt.where(Product.status == status)
        stmt = stmt.order_by(Product.created_at.desc(), Product.id).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_product_ids(self) -> List[str]:
        return list(await self.scalars(select(Product.id).order_by(Product.id)))

    async def count_order_items(self, product_id: str) -> int:
        stmt = select(func.count()).select_from(OrderItem).where(OrderItem.product_id == product_id)
        return int((await self.execute(stmt)).scalar_one())


class IndividualProductRepository(BaseRepository):
    """Repository for individual units."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_unit(self, unit_id: str) -> Optional[IndividualProduct]:
        stmt = select(IndividualProduct).where(IndividualProduct.id == unit_id)
        return await self.scalar_one_or_none(stmt)

    async def get_unit_by_qr(self, qr_code: str) -> Optional[IndividualProduct]:
        stmt = select(IndividualProduct).where(IndividualProduct.qr_code == qr_code)
        return await self.scalar_one_or_none(stmt)

    async def get_units(self, unit_ids: Iterable[str], *, for_update: bool = False) -> List[IndividualProduct]:
        ids = list(set(unit_ids))
        if not ids:
            return []
        stmt = (
            select(IndividualProduct)
            .where(IndividualProduct.id.in_(ids))
            .order_by(IndividualProduct.id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(await self.scalars(stmt))

    async def list_units(
        self,
        *,
        product_id: Optional[str],
        status: Optional[str],
        order_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[IndividualProduct]:
        stmt = select(IndividualProduct)
        if product_id:
            stmt = stmt.where(IndividualProduct.product_id == product_id)
        if status:
            stmt = stmt.where(IndividualProduct.status == status)
        if order_id:
            stmt = stmt.where(IndividualProduct.order_id == order_id)
        stmt = stmt.order_by(IndividualProduct.created_at, IndividualProduct.id).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def count_by_status(self, product_id: str) -> Dict[str, int]:
        stmt = (
            select(IndividualProduct.status, func.count())
            .where(IndividualProduct.product_id == product_id)
            .group_by(IndividualProduct.status)
        )
        result = await self.execute(stmt)
        return {status: int(count) for status, count in result.all()}

    async def reserve_available(self, unit_ids: List[str], order_id: str, at: datetime) -> int:
        """
        Flip every listed unit from available to reserved in one conditional
        UPDATE. Returns the number of rows that matched.
        """
        stmt = (
            update(IndividualProduct)
            .where(
                IndividualProduct.id.in_(unit_ids),
                IndividualProduct.status == "available",
            )
            .values(status="reserved", order_id=order_id, reserved_at=at)
        )
        result = await self.execute(stmt)
        return result.rowcount

    async def release_reserved(self, unit_ids: List[str], order_id: Optional[str] = None) -> int:
        stmt = update(IndividualProduct).where(
            IndividualProduct.id.in_(unit_ids),
            IndividualProduct.status == "reserved",
        )
        if order_id is not None:
            stmt = stmt.where(IndividualProduct.order_id == order_id)
        stmt = stmt.values(status="available", order_id=None, reserved_at=None)
        result = await self.execute(stmt)
        return result.rowcount

    async def reserved_unit_ids_for_order(self, order_id: str) -> List[str]:
        stmt = select(IndividualProduct.id).where(
            IndividualProduct.order_id == order_id,
            IndividualProduct.status == "reserved",
        )
        return list(await self.scalars(stmt))
