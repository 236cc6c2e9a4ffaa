"""
Stock ledger: the only writer of a Product's cached stock counters.

Counters are recomputed from the full live set of units every time, never
incremented, so a recompute that races another one leaves at worst a stale
value that the next recompute repairs.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Union

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import NotFoundError
from carpet_inventory.db.models.catalog import Product
from carpet_inventory.repositories.catalog import IndividualProductRepository, ProductRepository
from carpet_inventory.schemas.realtime import StockEvent
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.notifications import is_low, stock_notifier

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


# PUBLIC_INTERFACE
def product_status(current_stock: Number, min_stock_level: Number) -> str:
    """Status band of a product from its available stock."""
    if current_stock <= 0:
        return "out-of-stock"
    if current_stock <= min_stock_level:
        return "low-stock"
    return "in-stock"


# PUBLIC_INTERFACE
def recompute_material_status(current: Number, min_threshold: Number, max_capacity: Number) -> str:
    """
    Status band of a raw material.

    out-of-stock at or below zero, low-stock at or below min_threshold,
    overstock above max_capacity, otherwise in-stock.
    """
    if current <= 0:
        return "out-of-stock"
    if current <= min_threshold:
        return "low-stock"
    if current > max_capacity:
        return "overstock"
    return "in-stock"


class StockLedger(BaseService):
    """Recomputes Product aggregates from IndividualProduct rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.products = ProductRepository(session)
        self.units = IndividualProductRepository(session)

    # PUBLIC_INTERFACE
    async def recompute_product_stock(self, product_id: str) -> Product:
        """
        Refresh current_stock, individual_products_count and status.

        Tracked products count their available units; bulk products mirror
        base_quantity. Safe to call any number of times.
        """
        # Pending unit changes must be visible to the counting query.
        await self.session.flush()
        product = await self.products.get_product(product_id, for_update=True)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)

        counts = await self.units.count_by_status(product_id)
        previous_status = product.status

        product.individual_products_count = sum(counts.values())
        if product.individual_stock_tracking:
            product.current_stock = counts.get("available", 0)
        else:
            product.current_stock = max(product.base_quantity, 0)
        product.status = product_status(product.current_stock, product.min_stock_level)
        await self.session.flush()

        if product.status != previous_status and is_low(product.status):
            logger.info("Product %s dropped to %s (stock=%d)", product.id, product.status, product.current_stock)
            stock_notifier.queue(
                self.session,
                StockEvent(
                    event="stock.low",
                    entity_type="product",
                    entity_id=product.id,
                    name=product.name,
                    status=product.status,
                    current_stock=product.current_stock,
                    threshold=product.min_stock_level,
                ),
            )
        return product

    # PUBLIC_INTERFACE
    async def recompute_products(self, product_ids: Iterable[str]) -> List[Product]:
        """Recompute each distinct product once, in a stable order."""
        return [await self.recompute_product_stock(pid) for pid in sorted(set(product_ids))]

    # PUBLIC_INTERFACE
    async def recompute_all_products(self) -> int:
        """Repair counters of every product; returns how many were processed."""
        ids = await self.products.list_product_ids()
        await self.recompute_products(ids)
        logger.info("Recomputed stock for %d products", len(ids))
        return len(ids)
