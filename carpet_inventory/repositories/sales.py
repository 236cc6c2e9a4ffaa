from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.sales import Customer, Order, OrderItem
from .base import BaseRepository


class CustomerRepository(BaseRepository):
    """Repository for customers."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_customer(self, customer_id: str, *, for_update: bool = False) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.id == customer_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.scalar_one_or_none(stmt)

    async def list_customers(self, *, search: Optional[str], limit: int, offset: int) -> List[Customer]:
        stmt = select(Customer)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
        stmt = stmt.order_by(Customer.name, Customer.id).offset(offset).limit(limit)
        return list(await self.scalars(stmt))


class OrderRepository(BaseRepository):
    """Repository for orders and their items."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_order(self, order_id: str, *, for_update: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        stmt = select(Order).where(Order.order_number == order_number)
        return await self.scalar_one_or_none(stmt)

    async def list_orders(
        self,
        *,
        status: Optional[str],
        customer_id: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> List[Order]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Order.order_number.ilike(like), Order.customer_name.ilike(like)))
        stmt = stmt.order_by(Order.order_date.desc(), Order.id.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def product_items(self, order_id: str) -> List[OrderItem]:
        """Product lines of an order, in line order."""
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id, OrderItem.product_type == "product")
            .order_by(OrderItem.created_at, OrderItem.id)
        )
        return list(await self.scalars(stmt))

    async def get_item(self, order_id: str, item_id: str) -> Optional[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.id == item_id, OrderItem.order_id == order_id)
        return await self.scalar_one_or_none(stmt)

    async def status_counts(self) -> Dict[str, int]:
        stmt = select(Order.status, func.count()).group_by(Order.status)
        return {status: int(count) for status, count in (await self.execute(stmt)).all()}

    async def revenue_totals(self) -> Dict[str, Decimal]:
        stmt = select(
            func.coalesce(func.sum(Order.total_amount), 0),
            func.coalesce(func.sum(Order.paid_amount), 0),
            func.coalesce(func.sum(Order.outstanding_amount), 0),
        ).where(Order.status != "cancelled")
        total, paid, outstanding = (await self.execute(stmt)).one()
        return {
            "total_revenue": Decimal(str(total)),
            "paid_amount": Decimal(str(paid)),
            "outstanding_amount": Decimal(str(outstanding)),
        }
