from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.procurement import PurchaseOrder, PurchaseOrderItem, Supplier
from .base import BaseRepository


class SupplierRepository(BaseRepository):
    """Repository for suppliers."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_supplier(self, supplier_id: str, *, for_update: bool = False) -> Optional[Supplier]:
        stmt = select(Supplier).where(Supplier.id == supplier_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_by_name(self, name: str) -> Optional[Supplier]:
        stmt = select(Supplier).where(func.lower(Supplier.name) == name.lower())
        return await self.scalar_one_or_none(stmt)

    async def list_suppliers(
        self, *, search: Optional[str], limit: int, offset: int
    ) -> List[Supplier]:
        stmt = select(Supplier)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Supplier.name.ilike(like), Supplier.contact_person.ilike(like)))
        stmt = stmt.order_by(Supplier.name).offset(offset).limit(limit)
        return list(await self.scalars(stmt))


class PurchaseOrderRepository(BaseRepository):
    """Repository for purchase orders."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_purchase_order(self, po_id: str, *, for_update: bool = False) -> Optional[PurchaseOrder]:
        stmt = select(PurchaseOrder).where(PurchaseOrder.id == po_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def list_purchase_orders(
        self, *, supplier_id: Optional[str], status: Optional[str], limit: int, offset: int
    ) -> List[PurchaseOrder]:
        stmt = select(PurchaseOrder)
        if supplier_id:
            stmt = stmt.where(PurchaseOrder.supplier_id == supplier_id)
        if status:
            stmt = stmt.where(PurchaseOrder.status == status)
        stmt = stmt.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.order_number)
        stmt = stmt.offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def status_summary(self) -> Dict[str, dict]:
        stmt = select(
            PurchaseOrder.status,
            func.count(),
            func.coalesce(func.sum(PurchaseOrder.total_amount), 0),
        ).group_by(PurchaseOrder.status)
        return {
            status: {"count": int(count), "total_amount": Decimal(str(total))}
            for status, count, total in (await self.execute(stmt)).all()
        }

    async def materials_in_transit(self, material_ids: Iterable[str], *, exclude_po_id: str) -> Set[str]:
        """Materials still on an approved or shipped purchase order other than exclude_po_id."""
        ids = list(set(material_ids))
        if not ids:
            return set()
        stmt = (
            select(PurchaseOrderItem.material_id)
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
            .where(
                PurchaseOrderItem.material_id.in_(ids),
                PurchaseOrder.status.in_(("approved", "shipped")),
                PurchaseOrder.id != exclude_po_id,
            )
            .distinct()
        )
        return set(await self.scalars(stmt))
