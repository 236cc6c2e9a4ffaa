from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import NotFoundError, ValidationError
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.inventory import RawMaterial, StockMovement
from carpet_inventory.repositories.inventory import RawMaterialRepository, StockMovementRepository
from carpet_inventory.repositories.procurement import SupplierRepository
from carpet_inventory.schemas.inventory import RawMaterialCreate, RawMaterialUpdate, StockAdjustment
from carpet_inventory.schemas.realtime import StockEvent
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.notifications import is_low, stock_notifier
from carpet_inventory.services.pricing import money, to_decimal
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.stock_ledger import recompute_material_status

logger = logging.getLogger(__name__)

_QUANTITY_FIELDS = ("min_threshold", "max_capacity", "reorder_point")


class RawMaterialService(BaseService):
    """
    Raw material bookkeeping shared by the CRUD endpoints, order settlement
    and purchase order delivery.

    Every stock change goes through apply_stock_change so status, total_value
    and the movement ledger never drift apart.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.materials = RawMaterialRepository(session)
        self.movements = StockMovementRepository(session)
        self.suppliers = SupplierRepository(session)
        self.allocator = SequenceAllocator(session)

    async def _get(self, material_id: str, *, for_update: bool = False) -> RawMaterial:
        material = await self.materials.get_material(material_id, for_update=for_update)
        if material is None:
            raise NotFoundError.for_entity("Raw material", material_id)
        return material

    def refresh_derived(self, material: RawMaterial) -> None:
        """Recompute status and total_value from stock and cost."""
        material.status = recompute_material_status(
            material.current_stock, material.min_threshold, material.max_capacity
        )
        material.total_value = money(material.current_stock * material.cost_per_unit)

    # PUBLIC_INTERFACE
    async def apply_stock_change(
        self,
        material: RawMaterial,
        delta: Decimal,
        *,
        movement_type: str,
        reason: str,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        cost_per_unit: Optional[Decimal] = None,
        operator: Optional[str] = None,
        notes: Optional[str] = None,
        floor_at_zero: bool = False,
    ) -> StockMovement:
        """
        Move current_stock by delta and append the matching StockMovement.

        A result below zero raises ValidationError unless floor_at_zero, in
        which case stock stops at zero and the movement records what was
        actually removed.
        """
        previous = material.current_stock
        new_stock = previous + delta
        if new_stock < 0:
            if not floor_at_zero:
                raise ValidationError(
                    "Insufficient stock",
                    details={"material_id": material.id, "current_stock": float(previous), "requested": float(-delta)},
                )
            logger.warning("Stock of %s floored at zero (short by %s)", material.id, -new_stock)
            new_stock = Decimal("0")

        material.current_stock = new_stock
        if cost_per_unit is not None:
            material.cost_per_unit = money(cost_per_unit)
        if delta > 0:
            material.last_restocked = utcnow()
        previous_status = material.status
        self.refresh_derived(material)

        moved = abs(new_stock - previous)
        unit_cost = material.cost_per_unit
        movement = StockMovement(
            id=await self.allocator.movement_id(),
            material_id=material.id,
            material_name=material.name,
            movement_type=movement_type,
            quantity=moved,
            unit=material.unit,
            previous_stock=previous,
            new_stock=new_stock,
            reason=reason,
            reference_id=reference_id,
            reference_type=reference_type,
            cost_per_unit=unit_cost,
            total_cost=money(moved * unit_cost),
            operator=operator,
            notes=notes,
        )
        await self.movements.record(movement)
        self._queue_event(material, previous_status, delta, reference_id)
        return movement

    def _queue_event(self, material: RawMaterial, previous_status: str, delta: Decimal, reference_id: Optional[str]) -> None:
        if delta > 0:
            event = "stock.restocked"
        elif is_low(material.status) and material.status != previous_status:
            event = "stock.low"
        else:
            return
        stock_notifier.queue(
            self.session,
            StockEvent(
                event=event,
                entity_type="raw_material",
                entity_id=material.id,
                name=material.name,
                status=material.status,
                current_stock=float(material.current_stock),
                threshold=float(material.min_threshold),
                reference_id=reference_id,
            ),
        )

    # PUBLIC_INTERFACE
    async def find_for_line(self, material_id: Optional[str], name: str) -> RawMaterial:
        """
        Locked raw material referenced by an order line: by id first, then by
        the line's product name for lines whose id no longer resolves.
        """
        material = None
        if material_id:
            material = await self.materials.get_material(material_id, for_update=True)
        if material is None and name:
            material = await self.materials.get_material_by_name(name, for_update=True)
            if material is not None:
                logger.warning("Raw material %r resolved by name to %s", name, material.id)
        if material is None:
            raise NotFoundError("Raw material not found", details={"id": material_id, "name": name})
        return material

    # PUBLIC_INTERFACE
    async def create(self, payload: RawMaterialCreate) -> RawMaterial:
        """Create a raw material with derived status and value."""
        supplier_name = None
        if payload.supplier_id:
            supplier = await self.suppliers.get_supplier(payload.supplier_id)
            if supplier is None:
                raise NotFoundError.for_entity("Supplier", payload.supplier_id)
            supplier_name = supplier.name
        material = RawMaterial(
            id=await self.allocator.material_id(),
            name=payload.name,
            brand=payload.brand,
            category=payload.category,
            unit=payload.unit,
            current_stock=to_decimal(payload.current_stock),
            reserved_stock=Decimal("0"),
            min_threshold=to_decimal(payload.min_threshold),
            max_capacity=to_decimal(payload.max_capacity),
            reorder_point=to_decimal(payload.reorder_point),
            supplier_id=payload.supplier_id,
            supplier_name=supplier_name,
            cost_per_unit=money(payload.cost_per_unit),
        )
        if material.current_stock > 0:
            material.last_restocked = utcnow()
        self.refresh_derived(material)
        await self.materials.add(material)
        await self.session.flush()
        logger.info("Created raw material %s (%s)", material.id, material.name)
        return material

    # PUBLIC_INTERFACE
    async def update(self, material_id: str, payload: RawMaterialUpdate) -> RawMaterial:
        """Apply a partial update; status is recomputed unless set explicitly."""
        material = await self._get(material_id, for_update=True)
        changes = payload.model_dump(exclude_unset=True)
        explicit_status = changes.pop("status", None)

        if "supplier_id" in changes:
            supplier_id = changes.pop("supplier_id")
            if supplier_id:
                supplier = await self.suppliers.get_supplier(supplier_id)
                if supplier is None:
                    raise NotFoundError.for_entity("Supplier", supplier_id)
                material.supplier_id, material.supplier_name = supplier.id, supplier.name
            else:
                material.supplier_id, material.supplier_name = None, None

        for field, value in changes.items():
            if value is None:
                continue
            if field in _QUANTITY_FIELDS:
                value = to_decimal(value)
            elif field == "cost_per_unit":
                value = money(value)
            setattr(material, field, value)

        self.refresh_derived(material)
        if explicit_status:
            material.status = explicit_status
        await self.session.flush()
        return material

    # PUBLIC_INTERFACE
    async def adjust_stock(self, material_id: str, payload: StockAdjustment) -> RawMaterial:
        """
        Apply a signed manual correction and record it as a movement.

        Raises:
            ValidationError: zero quantity, or the result would be negative.
        """
        quantity = to_decimal(payload.quantity)
        if quantity == 0:
            raise ValidationError("Adjustment quantity must not be zero")
        material = await self._get(material_id, for_update=True)
        await self.apply_stock_change(
            material,
            quantity,
            movement_type="in" if quantity > 0 else "out",
            reason=payload.reason,
            reference_type="adjustment",
            operator=payload.operator,
            notes=payload.notes,
        )
        await self.session.flush()
        return material

    # PUBLIC_INTERFACE
    async def get(self, material_id: str) -> RawMaterial:
        return await self._get(material_id)

    # PUBLIC_INTERFACE
    async def list_materials(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RawMaterial]:
        return await self.materials.list_materials(
            search=search, category=category, status=status, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def stock_history(self, material_id: str, *, limit: int = 100, offset: int = 0) -> List[StockMovement]:
        """Movements of one material, newest first."""
        await self._get(material_id)
        return await self.movements.list_movements(material_id=material_id, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def reorder_candidates(self) -> List[RawMaterial]:
        """Materials at or below their reorder point."""
        return await self.materials.list_reorder_candidates()

    # PUBLIC_INTERFACE
    async def stats(self) -> Dict[str, object]:
        counts = await self.materials.status_counts()
        return {"total_materials": sum(counts.values()), "by_status": counts}
