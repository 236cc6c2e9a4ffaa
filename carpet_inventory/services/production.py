"""
Production batches.

    planned -> in_progress -> completed
    planned | in_progress -> cancelled

Consumptions are recorded while a batch is open and touch no stock. Completion
applies the whole batch in the caller's transaction: consumed units are marked
used, raw material is deducted with a production movement, the produced
quantity is added and the affected products are recomputed. Any failure leaves
the batch open and the inventory untouched.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.core.settings import AppSettings, get_app_settings
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.catalog import Product
from carpet_inventory.db.models.production import MaterialConsumption, ProductionBatch
from carpet_inventory.repositories.catalog import IndividualProductRepository, ProductRepository
from carpet_inventory.repositories.inventory import RawMaterialRepository
from carpet_inventory.repositories.production import ProductionBatchRepository
from carpet_inventory.schemas.catalog import UnitBatchCreate
from carpet_inventory.schemas.production import BatchCompletion, MaterialConsumptionCreate, ProductionBatchCreate
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.pricing import to_decimal
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.stock_ledger import StockLedger
from carpet_inventory.services.units import UnitService

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("planned", "in_progress")


class ProductionService(BaseService):
    """Plans production batches and books their inventory effects on completion."""

    def __init__(self, session: AsyncSession, settings: Optional[AppSettings] = None) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.batches = ProductionBatchRepository(session)
        self.products = ProductRepository(session)
        self.unit_repo = IndividualProductRepository(session)
        self.materials = RawMaterialRepository(session)
        self.units = UnitService(session, self.settings)
        self.material_service = RawMaterialService(session)
        self.ledger = StockLedger(session)
        self.allocator = SequenceAllocator(session)

    async def _get(self, batch_id: str, *, for_update: bool = False) -> ProductionBatch:
        batch = await self.batches.get_batch(batch_id, for_update=for_update)
        if batch is None:
            raise NotFoundError.for_entity("Production batch", batch_id)
        return batch

    async def _product(self, product_id: str, *, for_update: bool = False) -> Product:
        product = await self.products.get_product(product_id, for_update=for_update)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)
        return product

    @staticmethod
    def _require_open(batch: ProductionBatch) -> None:
        if batch.status not in OPEN_STATUSES:
            raise ConflictError(
                f"Production batch is {batch.status}; it can no longer change",
                details={"id": batch.id, "status": batch.status},
            )

    async def _check_units(self, product: Product, unit_ids: List[str]) -> None:
        units = {u.id: u for u in await self.unit_repo.get_units(unit_ids)}
        missing = [i for i in unit_ids if i not in units]
        if missing:
            raise NotFoundError("Individual product not found", details={"ids": missing})
        foreign = [u.id for u in units.values() if u.product_id != product.id]
        if foreign:
            raise ValidationError(
                "Units belong to another product", details={"ids": foreign, "product_id": product.id}
            )
        blocked = [u.id for u in units.values() if u.status != "available"]
        if blocked:
            raise ConflictError("Only available units can be consumed", details={"ids": blocked})
        claimed = set(await self.batches.units_claimed_by_open_batches()) & set(unit_ids)
        if claimed:
            raise ConflictError("Units are already planned for production", details={"ids": sorted(claimed)})

    async def _add_consumption(self, batch: ProductionBatch, payload: MaterialConsumptionCreate) -> MaterialConsumption:
        unit_ids: List[str] = []
        if payload.material_type == "raw_material":
            material = await self.materials.get_material(payload.material_id)
            if material is None:
                raise NotFoundError.for_entity("Raw material", payload.material_id)
            name, unit, quantity = material.name, material.unit, to_decimal(payload.quantity)
        else:
            product = await self._product(payload.material_id)
            if product.individual_stock_tracking:
                unit_ids = list(dict.fromkeys(payload.individual_product_ids))
                if not unit_ids:
                    raise ValidationError(
                        "Consumed units of a tracked product must be listed", details={"product_id": product.id}
                    )
                await self._check_units(product, unit_ids)
                quantity = Decimal(len(unit_ids))
            else:
                if payload.individual_product_ids:
                    raise ValidationError(
                        "Product does not track individual units", details={"product_id": product.id}
                    )
                quantity = to_decimal(payload.quantity)
                if quantity != quantity.to_integral_value():
                    raise ValidationError(
                        "Product quantities are whole pieces", details={"quantity": float(quantity)}
                    )
            name, unit = product.name, product.unit

        consumption = MaterialConsumption(
            id=await self.allocator.consumption_id(),
            batch_id=batch.id,
            material_type=payload.material_type,
            material_id=payload.material_id,
            material_name=name,
            quantity=quantity,
            unit=unit,
            individual_product_ids=unit_ids,
            status="planned",
            notes=payload.notes,
        )
        batch.consumptions.append(consumption)
        # Later unit checks query the consumptions table.
        await self.session.flush()
        return consumption

    # PUBLIC_INTERFACE
    async def create_batch(self, payload: ProductionBatchCreate) -> ProductionBatch:
        """
        Plan a batch for a product, optionally with its consumptions.

        Raises:
            NotFoundError: unknown product, material or unit.
            ConflictError: batch number taken, or a unit is not free to consume.
        """
        product = await self._product(payload.product_id)
        batch_id = await self.allocator.batch_id()
        batch_number = payload.batch_number or batch_id
        if await self.batches.get_by_batch_number(batch_number) is not None:
            raise ConflictError("Batch number already exists", details={"batch_number": batch_number})

        batch = ProductionBatch(
            id=batch_id,
            batch_number=batch_number,
            product_id=product.id,
            product_name=product.name,
            planned_quantity=payload.planned_quantity,
            actual_quantity=0,
            status="planned",
            priority=payload.priority,
            operator=payload.operator,
            supervisor=payload.supervisor,
            start_date=payload.start_date,
            notes=payload.notes,
            consumptions=[],
        )
        await self.batches.add(batch)
        await self.session.flush()
        for item in payload.consumptions:
            await self._add_consumption(batch, item)
        logger.info(
            "Planned batch %s: %d x %s, %d consumption(s)",
            batch.batch_number, batch.planned_quantity, product.id, len(batch.consumptions),
        )
        return batch

    # PUBLIC_INTERFACE
    async def add_consumption(self, batch_id: str, payload: MaterialConsumptionCreate) -> ProductionBatch:
        """Record one more material for an open batch."""
        batch = await self._get(batch_id, for_update=True)
        self._require_open(batch)
        await self._add_consumption(batch, payload)
        return batch

    # PUBLIC_INTERFACE
    async def remove_consumption(self, batch_id: str, consumption_id: str) -> ProductionBatch:
        batch = await self._get(batch_id, for_update=True)
        self._require_open(batch)
        consumption = next((c for c in batch.consumptions if c.id == consumption_id), None)
        if consumption is None:
            raise NotFoundError.for_entity("Material consumption", consumption_id)
        batch.consumptions.remove(consumption)
        await self.session.flush()
        return batch

    # PUBLIC_INTERFACE
    async def start_batch(self, batch_id: str) -> ProductionBatch:
        """planned -> in_progress; starting a running batch is a no-op."""
        batch = await self._get(batch_id, for_update=True)
        if batch.status == "in_progress":
            return batch
        if batch.status != "planned":
            raise ConflictError(
                f"A {batch.status} batch cannot be started", details={"id": batch.id, "status": batch.status}
            )
        batch.status = "in_progress"
        batch.start_date = batch.start_date or utcnow()
        await self.session.flush()
        logger.info("Batch %s started", batch.batch_number)
        return batch

    async def _consume(self, batch: ProductionBatch, consumption: MaterialConsumption, operator: Optional[str]) -> Set[str]:
        """Apply one consumption; returns the product ids whose stock moved."""
        note = f"Consumed by batch {batch.batch_number}"
        if consumption.material_type == "raw_material":
            material = await self.materials.get_material(consumption.material_id, for_update=True)
            if material is None:
                raise NotFoundError.for_entity("Raw material", consumption.material_id)
            await self.material_service.apply_stock_change(
                material,
                -consumption.quantity,
                movement_type="out",
                reason="production",
                reference_id=batch.id,
                reference_type="production_batch",
                operator=operator,
                notes=note,
            )
            return set()
        if consumption.individual_product_ids:
            await self.units.mark_used(consumption.individual_product_ids, notes=note)
            return {consumption.material_id}

        product = await self._product(consumption.material_id, for_update=True)
        needed = int(consumption.quantity)
        if product.base_quantity < needed:
            raise ValidationError(
                "Insufficient stock",
                details={"product_id": product.id, "current_stock": product.base_quantity, "requested": needed},
            )
        product.base_quantity -= needed
        await self.session.flush()
        return {product.id}

    # PUBLIC_INTERFACE
    async def complete_batch(self, batch_id: str, payload: BatchCompletion) -> ProductionBatch:
        """
        Close an open batch and book everything it did to the inventory.

        Parameters:
            batch_id: Batch to complete.
            payload: Produced quantity plus grading and placement of the new units.
        Returns:
            The completed batch.
        Raises:
            ConflictError: batch not open, or a consumed unit is no longer available.
            ValidationError: not enough raw material or bulk product left.
        """
        batch = await self._get(batch_id, for_update=True)
        self._require_open(batch)
        product = await self._product(batch.product_id)
        now = utcnow()

        touched = {product.id}
        applied = 0
        for consumption in batch.consumptions:
            if consumption.status != "planned":
                continue
            touched |= await self._consume(batch, consumption, payload.operator)
            consumption.status = "consumed"
            consumption.consumed_at = now
            applied += 1

        if payload.actual_quantity:
            if product.individual_stock_tracking:
                await self.units.create_units(
                    product.id,
                    UnitBatchCreate(
                        quantity=payload.actual_quantity,
                        batch_number=batch.batch_number,
                        quality_grade=payload.quality_grade,
                        inspector=payload.inspector,
                        location=payload.location,
                        production_date=now.date(),
                        notes=payload.notes,
                    ),
                )
            else:
                product = await self._product(product.id, for_update=True)
                product.base_quantity += payload.actual_quantity

        batch.actual_quantity = payload.actual_quantity
        batch.status = "completed"
        batch.completion_date = now
        batch.inspector = payload.inspector
        if payload.operator:
            batch.operator = payload.operator
        await self.ledger.recompute_products(touched)
        logger.info(
            "Batch %s completed: %d produced, %d consumption(s) applied",
            batch.batch_number, payload.actual_quantity, applied,
        )
        return batch

    # PUBLIC_INTERFACE
    async def cancel_batch(self, batch_id: str, reason: Optional[str] = None) -> ProductionBatch:
        """Cancel an open batch; its planned consumptions are dropped without touching stock."""
        batch = await self._get(batch_id, for_update=True)
        if batch.status == "cancelled":
            return batch
        self._require_open(batch)
        for consumption in batch.consumptions:
            if consumption.status == "planned":
                consumption.status = "cancelled"
        batch.status = "cancelled"
        if reason:
            batch.notes = f"{batch.notes}\n{reason}" if batch.notes else reason
        await self.session.flush()
        logger.info("Batch %s cancelled", batch.batch_number)
        return batch

    # PUBLIC_INTERFACE
    async def delete_batch(self, batch_id: str) -> None:
        """Delete a batch that never completed."""
        batch = await self._get(batch_id, for_update=True)
        if batch.status == "completed":
            raise ConflictError("A completed batch cannot be deleted", details={"id": batch_id})
        await self.batches.delete(batch)
        await self.session.flush()

    # PUBLIC_INTERFACE
    async def get_batch(self, batch_id: str) -> ProductionBatch:
        return await self._get(batch_id)

    # PUBLIC_INTERFACE
    async def list_batches(
        self,
        *,
        status: Optional[str] = None,
        product_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ProductionBatch]:
        return await self.batches.list_batches(status=status, product_id=product_id, limit=limit, offset=offset)
