"""
Stock settlement outbox.

Dispatch and delivery mark selected units sold inside the status transaction.
The remaining bookkeeping (bulk product quantities and raw material stock) is
owed through a ``stock_settlements`` row written in that same transaction and
executed after commit, either by a FastAPI background task or by
``process_pending``. The row is keyed by order id, so an order is settled once
no matter how many transitions ask for it, and failures stay visible on the
row instead of disappearing into a log.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpet_inventory.core.errors import InventoryError, NotFoundError
from carpet_inventory.core.logging import order_id_var
from carpet_inventory.core.settings import AppSettings, get_app_settings
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.inventory import StockSettlement
from carpet_inventory.db.models.sales import Order
from carpet_inventory.repositories.catalog import ProductRepository
from carpet_inventory.repositories.inventory import StockSettlementRepository
from carpet_inventory.repositories.sales import OrderRepository
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.notifications import stock_notifier
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

_MAX_ERROR_LENGTH = 2000


class SettlementService(BaseService):
    """Creates and executes stock settlements for dispatched orders."""

    def __init__(self, session: AsyncSession, settings: Optional[AppSettings] = None) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.settlements = StockSettlementRepository(session)
        self.orders = OrderRepository(session)
        self.products = ProductRepository(session)
        self.materials = RawMaterialService(session)
        self.ledger = StockLedger(session)

    # PUBLIC_INTERFACE
    async def ensure(self, order_id: str, trigger_status: str) -> StockSettlement:
        """
        Get or create the settlement row for an order in the current transaction.

        A failed settlement is put back to pending so the next run retries it.
        """
        row = await self.settlements.get(order_id, for_update=True)
        if row is None:
            row = StockSettlement(order_id=order_id, trigger_status=trigger_status, state="pending", attempts=0)
            await self.settlements.add(row)
            await self.session.flush()
        elif row.state == "failed":
            row.state = "pending"
        return row

    # PUBLIC_INTERFACE
    async def get(self, order_id: str) -> StockSettlement:
        row = await self.settlements.get(order_id)
        if row is None:
            raise NotFoundError.for_entity("Stock settlement", order_id)
        return row

    # PUBLIC_INTERFACE
    async def list_settlements(self, *, state: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[StockSettlement]:
        return await self.settlements.list_settlements(state=state, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def settle(self, order_id: str) -> StockSettlement:
        """
        Execute the settlement for an order and commit the outcome.

        All deductions of one attempt succeed or fail together. On failure the
        row records state=failed, the attempt count and the error.
        """
        token = order_id_var.set(order_id)
        try:
            row = await self.settlements.get(order_id, for_update=True)
            if row is None:
                raise NotFoundError.for_entity("Stock settlement", order_id)
            if row.state == "completed":
                return row

            row.attempts += 1
            try:
                async with self.session.begin_nested():
                    await self._apply(order_id)
            except (InventoryError, SQLAlchemyError) as exc:
                stock_notifier.discard_pending(self.session)
                row.state = "failed"
                row.last_error = str(exc)[:_MAX_ERROR_LENGTH]
                logger.error(
                    "Stock settlement for order %s failed on attempt %d: %s", order_id, row.attempts, exc
                )
            else:
                row.state = "completed"
                row.completed_at = utcnow()
                row.last_error = None
                logger.info("Stock settlement for order %s completed", order_id)

            await self.commit()
            await self.session.refresh(row)
            return row
        finally:
            order_id_var.reset(token)

    async def _apply(self, order_id: str) -> None:
        order = await self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError.for_entity("Order", order_id)

        touched: Set[str] = set()
        for item in order.items:
            if item.product_type == "raw_material":
                await self._deduct_material(order, item.raw_material_id, item.product_name, item.quantity)
                continue
            if item.selected_individual_products:
                continue
            product = await self.products.get_product(item.product_id, for_update=True)
            if product is None:
                raise NotFoundError.for_entity("Product", item.product_id)
            if product.individual_stock_tracking:
                logger.warning(
                    "Order %s line %s has no units selected for tracked product %s; nothing deducted",
                    order.id, item.id, product.id,
                )
                continue
            product.base_quantity = max(product.base_quantity - item.quantity, 0)
            touched.add(product.id)

        await self.ledger.recompute_products(touched)

    async def _deduct_material(self, order: Order, material_id: Optional[str], name: str, quantity: int) -> None:
        material = await self.materials.find_for_line(material_id, name)
        qty = Decimal(quantity)
        await self.materials.apply_stock_change(
            material,
            -qty,
            movement_type="out",
            reason="sale",
            reference_id=order.id,
            reference_type="order",
            notes=f"Order {order.order_number}",
            floor_at_zero=True,
        )
        material.reserved_stock = max(material.reserved_stock - qty, Decimal("0"))

    # PUBLIC_INTERFACE
    async def process_pending(self, limit: int = 50) -> List[StockSettlement]:
        """Retry pending and failed settlements below the attempt limit."""
        rows = await self.settlements.list_retryable(
            max_attempts=self.settings.SETTLEMENT_MAX_ATTEMPTS, limit=limit
        )
        order_ids = [r.order_id for r in rows]
        # Release the read snapshot before settling row by row.
        await self.session.commit()
        return [await self.settle(order_id) for order_id in order_ids]


# PUBLIC_INTERFACE
async def run_settlement(session_maker: async_sessionmaker[AsyncSession], order_id: str) -> None:
    """Background task entry point: settle one order in a fresh session."""
    async with session_maker() as session:
        try:
            await SettlementService(session).settle(order_id)
        except Exception:
            logger.exception("Stock settlement task crashed for order %s", order_id)
