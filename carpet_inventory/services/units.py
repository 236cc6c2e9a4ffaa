"""
Lifecycle of individual carpet units.

    available -> reserved -> sold
    reserved  -> available          (release)
    available -> used | damaged | sold

sold, used and damaged are terminal. Every transition ends with a stock ledger
recompute of the affected products inside the same transaction.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.core.settings import AppSettings, get_app_settings
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.catalog import IndividualProduct
from carpet_inventory.repositories.catalog import IndividualProductRepository, ProductRepository
from carpet_inventory.repositories.sales import OrderRepository
from carpet_inventory.schemas.catalog import UnitBatchCreate, UnitUpdate
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


def _distinct(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def selection_entry(unit: IndividualProduct, status: str, allocated_at: Optional[str] = None) -> dict:
    """One entry of OrderItem.selected_individual_products."""
    return {
        "individual_product_id": unit.id,
        "qr_code": unit.qr_code,
        "serial_number": unit.serial_number,
        "status": status,
        "allocated_at": allocated_at or utcnow().isoformat(),
    }


def with_status(entries: Iterable[dict], unit_ids: Iterable[str], status: str) -> List[dict]:
    """Copy of a selection list with the given units set to status."""
    ids = set(unit_ids)
    return [dict(e, status=status) if e["individual_product_id"] in ids else dict(e) for e in entries]


class UnitService(BaseService):
    """State machine for IndividualProduct rows."""

    def __init__(self, session: AsyncSession, settings: Optional[AppSettings] = None) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.units = IndividualProductRepository(session)
        self.products = ProductRepository(session)
        self.orders = OrderRepository(session)
        self.ledger = StockLedger(session)
        self.allocator = SequenceAllocator(session)

    async def _load(self, unit_ids: List[str], *, for_update: bool = True) -> Dict[str, IndividualProduct]:
        units = {u.id: u for u in await self.units.get_units(unit_ids, for_update=for_update)}
        missing = [i for i in unit_ids if i not in units]
        if missing:
            raise NotFoundError("Individual product not found", details={"ids": missing})
        return units

    async def _record_on_order(self, units: Iterable[IndividualProduct], order_id: str, status: str) -> None:
        """
        Mirror a transition onto the product lines of the holding order.

        Units already listed take the new status; unlisted units join the
        first line of their product that still has room.
        """
        items = await self.orders.product_items(order_id)
        if not items:
            return
        for unit in units:
            holder = next((i for i in items if unit.id in i.selected_unit_ids), None)
            if holder is not None:
                holder.selected_individual_products = with_status(
                    holder.selected_individual_products, [unit.id], status
                )
                continue
            holder = next(
                (i for i in items if i.product_id == unit.product_id and not i.is_fully_selected), None
            )
            if holder is None:
                logger.warning("Unit %s held by order %s fits none of its lines", unit.id, order_id)
                continue
            holder.selected_individual_products = [
                *(holder.selected_individual_products or []),
                selection_entry(unit, status),
            ]

    async def _drop_from_orders(self, holders: Dict[str, str]) -> None:
        """Remove released units from the selections of the orders that held them."""
        by_order: Dict[str, set] = {}
        for unit_id, order_id in holders.items():
            by_order.setdefault(order_id, set()).add(unit_id)
        for order_id, unit_ids in by_order.items():
            for item in await self.orders.product_items(order_id):
                entries = item.selected_individual_products or []
                kept = [e for e in entries if e["individual_product_id"] not in unit_ids]
                if len(kept) != len(entries):
                    item.selected_individual_products = kept

    # PUBLIC_INTERFACE
    async def reserve(
        self, unit_ids: Iterable[str], order_id: str, *, sync_order: bool = True
    ) -> List[IndividualProduct]:
        """
        Reserve units for an order, all or nothing.

        One conditional UPDATE flips every unit still available; if fewer rows
        match than were requested the savepoint is rolled back and
        ConflictError names the units that were already taken. With
        sync_order the units are also listed on the order's matching lines;
        the order workflow passes False because it writes selections itself.
        """
        ids = _distinct(unit_ids)
        if not ids:
            return []
        try:
            async with self.session.begin_nested():
                matched = await self.units.reserve_available(ids, order_id, utcnow())
                if matched != len(ids):
                    raise ConflictError("Units are already allocated elsewhere")
        except ConflictError:
            units = await self._load(ids, for_update=False)
            taken = [
                {"id": u.id, "status": u.status, "order_id": u.order_id}
                for u in units.values()
                if u.status != "available"
            ]
            logger.info("Reservation for order %s lost on %d unit(s)", order_id, len(taken))
            raise ConflictError("Units are already allocated elsewhere", details={"units": taken})

        units = await self._load(ids, for_update=False)
        await self.ledger.recompute_products(u.product_id for u in units.values())
        if sync_order:
            await self._record_on_order([units[i] for i in ids], order_id, "reserved")
        return [units[i] for i in ids]

    # PUBLIC_INTERFACE
    async def mark_sold(
        self, unit_ids: Iterable[str], order_id: str, *, sync_order: bool = True
    ) -> List[IndividualProduct]:
        """
        Sell units for an order.

        Units reserved for this order (or still available) become sold with
        sold_date stamped and order_id kept. Units already sold to this order
        are left untouched, so dispatch and delivery can both call this.
        The order's line selections record the sale unless sync_order is False.
        """
        ids = _distinct(unit_ids)
        if not ids:
            return []
        units = await self._load(ids)

        to_sell: List[IndividualProduct] = []
        for unit in units.values():
            if unit.status == "sold":
                if unit.order_id not in (None, order_id):
                    raise ConflictError(
                        "Unit already sold on another order",
                        details={"id": unit.id, "order_id": unit.order_id},
                    )
                continue
            if unit.status == "reserved" and unit.order_id != order_id:
                raise ConflictError(
                    "Unit is reserved for another order",
                    details={"id": unit.id, "order_id": unit.order_id},
                )
            if unit.status in ("used", "damaged"):
                raise ConflictError(f"Unit is {unit.status} and cannot be sold", details={"id": unit.id})
            to_sell.append(unit)

        now = utcnow()
        for unit in to_sell:
            if unit.status == "available":
                logger.warning("Selling unit %s for order %s without a prior reservation", unit.id, order_id)
            unit.status = "sold"
            unit.order_id = order_id
            unit.sold_date = now

        if to_sell:
            await self.ledger.recompute_products(u.product_id for u in to_sell)
            if sync_order:
                await self._record_on_order(to_sell, order_id, "sold")
        return [units[i] for i in ids]

    # PUBLIC_INTERFACE
    async def release(
        self, unit_ids: Iterable[str], order_id: Optional[str] = None, *, sync_order: bool = True
    ) -> int:
        """
        Return reserved units to available, clearing order_id and reserved_at.

        When order_id is given only units held by that order are released.
        Units in any other status are left as they are. Released units leave
        the selections of the orders that held them unless sync_order is False.
        Returns the count released.
        """
        ids = _distinct(unit_ids)
        if not ids:
            return 0
        units = await self.units.get_units(ids)
        holders = {
            u.id: u.order_id
            for u in units
            if u.status == "reserved" and u.order_id and order_id in (None, u.order_id)
        }
        released = await self.units.release_reserved(ids, order_id)
        if released:
            await self.ledger.recompute_products(u.product_id for u in units)
            if sync_order:
                await self._drop_from_orders(holders)
        return released

    # PUBLIC_INTERFACE
    async def release_for_order(self, order_id: str, *, sync_order: bool = True) -> int:
        """Release every unit still reserved for the order."""
        ids = await self.units.reserved_unit_ids_for_order(order_id)
        return await self.release(ids, order_id, sync_order=sync_order)

    async def _retire(self, unit_ids: Iterable[str], status: str, notes: Optional[str]) -> List[IndividualProduct]:
        ids = _distinct(unit_ids)
        units = await self._load(ids)
        blocked = [u.id for u in units.values() if u.status != "available"]
        if blocked:
            raise ConflictError(f"Only available units can be marked {status}", details={"ids": blocked})
        for unit in units.values():
            unit.status = status
            if notes:
                unit.notes = notes
        await self.ledger.recompute_products(u.product_id for u in units.values())
        return [units[i] for i in ids]

    # PUBLIC_INTERFACE
    async def mark_damaged(self, unit_ids: Iterable[str], notes: Optional[str] = None) -> List[IndividualProduct]:
        """Retire available units as damaged."""
        return await self._retire(unit_ids, "damaged", notes)

    # PUBLIC_INTERFACE
    async def mark_used(self, unit_ids: Iterable[str], notes: Optional[str] = None) -> List[IndividualProduct]:
        """Retire available units as consumed internally."""
        return await self._retire(unit_ids, "used", notes)

    # PUBLIC_INTERFACE
    async def change_status(self, unit_id: str, status: str, order_id: Optional[str] = None) -> IndividualProduct:
        """Route a single-unit status request to the matching transition."""
        unit = await self.get_unit(unit_id)
        if status == unit.status:
            return unit
        if status == "reserved":
            if not order_id:
                raise ValidationError("order_id is required to reserve a unit")
            await self.reserve([unit_id], order_id)
        elif status == "sold":
            target_order = order_id or unit.order_id
            if not target_order:
                raise ValidationError("order_id is required to sell an unreserved unit")
            await self.mark_sold([unit_id], target_order)
        elif status == "available":
            if unit.status != "reserved":
                raise ConflictError(f"A {unit.status} unit cannot return to available", details={"id": unit_id})
            await self.release([unit_id])
        elif status == "damaged":
            await self.mark_damaged([unit_id])
        elif status == "used":
            await self.mark_used([unit_id])
        else:
            raise ValidationError(f"Unknown unit status: {status}")
        return await self.get_unit(unit_id)

    # PUBLIC_INTERFACE
    async def create_units(self, product_id: str, payload: UnitBatchCreate) -> List[IndividualProduct]:
        """
        Register units produced for a tracked product and refresh its counters.

        Raises:
            NotFoundError: unknown product.
            ValidationError: tracking disabled or quantity outside 1..MAX_UNITS_PER_BATCH.
        """
        if payload.quantity < 1 or payload.quantity > self.settings.MAX_UNITS_PER_BATCH:
            raise ValidationError(
                f"Quantity must be between 1 and {self.settings.MAX_UNITS_PER_BATCH}",
                details={"quantity": payload.quantity},
            )
        product = await self.products.get_product(product_id, for_update=True)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)
        if not product.individual_stock_tracking:
            raise ValidationError(
                "Individual stock tracking is disabled for this product", details={"product_id": product_id}
            )

        created: List[IndividualProduct] = []
        for _ in range(payload.quantity):
            unit_id = await self.allocator.unit_id()
            unit = IndividualProduct(
                id=unit_id,
                qr_code=await self.allocator.qr_code(),
                serial_number=f"SN-{unit_id}",
                product_id=product.id,
                product_name=product.name,
                status="available",
                production_date=payload.production_date or utcnow().date(),
                batch_number=payload.batch_number,
                quality_grade=payload.quality_grade,
                inspector=payload.inspector,
                location=payload.location,
                notes=payload.notes,
            )
            created.append(unit)
        await self.units.add_all(created)
        await self.ledger.recompute_product_stock(product.id)
        logger.info("Created %d units for product %s", len(created), product.id)
        return created

    # PUBLIC_INTERFACE
    async def update_unit(self, unit_id: str, payload: UnitUpdate) -> IndividualProduct:
        """Edit descriptive fields; status only moves through the transitions."""
        unit = await self.get_unit(unit_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(unit, field, value)
        await self.session.flush()
        return unit

    # PUBLIC_INTERFACE
    async def purge_unit(self, unit_id: str) -> None:
        """Administrative hard delete of a unit that is not held by an order."""
        unit = await self.get_unit(unit_id)
        if unit.status == "reserved":
            raise ConflictError("Unit is reserved for an order", details={"id": unit_id, "order_id": unit.order_id})
        product_id = unit.product_id
        await self.units.delete(unit)
        await self.ledger.recompute_product_stock(product_id)
        logger.warning("Purged unit %s of product %s", unit_id, product_id)

    # PUBLIC_INTERFACE
    async def get_unit(self, unit_id: str) -> IndividualProduct:
        unit = await self.units.get_unit(unit_id)
        if unit is None:
            raise NotFoundError.for_entity("Individual product", unit_id)
        return unit

    # PUBLIC_INTERFACE
    async def get_unit_by_qr(self, qr_code: str) -> IndividualProduct:
        unit = await self.units.get_unit_by_qr(qr_code)
        if unit is None:
            raise NotFoundError.for_entity("Individual product", qr_code)
        return unit

    # PUBLIC_INTERFACE
    async def list_units(
        self,
        *,
        product_id: Optional[str] = None,
        status: Optional[str] = None,
        order_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[IndividualProduct]:
        return await self.units.list_units(
            product_id=product_id, status=status, order_id=order_id, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def unit_stats(self, product_id: str) -> Dict[str, int]:
        """Per-status unit counts for a product, with every status present."""
        if await self.products.get_product(product_id) is None:
            raise NotFoundError.for_entity("Product", product_id)
        counts = await self.units.count_by_status(product_id)
        stats = {status: counts.get(status, 0) for status in ("available", "reserved", "sold", "used", "damaged")}
        stats["total"] = sum(counts.values())
        return stats
