"""
Purchase order workflow for inbound raw material.

    draft -> pending -> approved -> shipped -> delivered
    any state except delivered -> cancelled

Approval puts the ordered materials in transit, delivery books the stock in
and rates the supplier, cancellation undoes the approval side effect only.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.core.settings import AppSettings, get_app_settings
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.procurement import PURCHASE_ORDER_STATUSES, PurchaseOrder, PurchaseOrderItem
from carpet_inventory.repositories.inventory import RawMaterialRepository
from carpet_inventory.repositories.procurement import PurchaseOrderRepository, SupplierRepository
from carpet_inventory.schemas.procurement import PurchaseOrderCreate
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.pricing import compute_order_totals, line_total, money, sum_lines, to_decimal, weighted_rating
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.sequences import SequenceAllocator

logger = logging.getLogger(__name__)

STATUS_RANK: Dict[str, int] = {"draft": 0, "pending": 1, "approved": 2, "shipped": 3, "delivered": 4}
TERMINAL_STATUSES = ("delivered", "cancelled")


class PurchaseOrderService(BaseService):
    """Creates purchase orders and applies their inventory effects."""

    def __init__(self, session: AsyncSession, settings: Optional[AppSettings] = None) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.purchase_orders = PurchaseOrderRepository(session)
        self.suppliers = SupplierRepository(session)
        self.materials = RawMaterialRepository(session)
        self.material_service = RawMaterialService(session)
        self.allocator = SequenceAllocator(session)

    async def _get(self, po_id: str, *, for_update: bool = False) -> PurchaseOrder:
        po = await self.purchase_orders.get_purchase_order(po_id, for_update=for_update)
        if po is None:
            raise NotFoundError.for_entity("Purchase order", po_id)
        return po

    @staticmethod
    def _record(po: PurchaseOrder, status: str, by: Optional[str] = None, notes: Optional[str] = None) -> None:
        # JSON columns are replaced, not mutated, so the change is flushed.
        entry = {"status": status, "at": utcnow().isoformat(), "by": by, "notes": notes}
        po.status_history = [*(po.status_history or []), entry]
        po.status = status

    @staticmethod
    def _require_open(po: PurchaseOrder) -> None:
        if po.status in TERMINAL_STATUSES:
            raise ConflictError(
                f"Purchase order is {po.status}; no further transitions are allowed",
                details={"id": po.id, "status": po.status},
            )

    # PUBLIC_INTERFACE
    async def create(self, payload: PurchaseOrderCreate) -> PurchaseOrder:
        """
        Create a purchase order with one line per raw material.

        Parameters:
            payload: PurchaseOrderCreate request
        Returns:
            The draft (or pending) purchase order with derived totals.
        """
        supplier = await self.suppliers.get_supplier(payload.supplier_id, for_update=True)
        if supplier is None:
            raise NotFoundError.for_entity("Supplier", payload.supplier_id)
        materials = await self.materials.get_materials(i.material_id for i in payload.items)
        missing = sorted({i.material_id for i in payload.items} - materials.keys())
        if missing:
            raise NotFoundError("Raw material not found", details={"ids": missing})

        now = utcnow()
        po = PurchaseOrder(
            id=await self.allocator.purchase_order_id(),
            order_number=await self.allocator.order_number(),
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            status=payload.status,
            order_date=now,
            expected_delivery=payload.expected_delivery,
            tax_rate=to_decimal(payload.tax_rate),
            discount_amount=money(payload.discount_amount),
            paid_amount=money(payload.paid_amount),
            notes=payload.notes,
            status_history=[{"status": payload.status, "at": now.isoformat(), "by": None, "notes": "created"}],
        )
        for line_no, item in enumerate(payload.items, start=1):
            material = materials[item.material_id]
            po.items.append(
                PurchaseOrderItem(
                    id=await self.allocator.purchase_order_item_id(),
                    line_no=line_no,
                    material_id=material.id,
                    material_name=material.name,
                    quantity=to_decimal(item.quantity),
                    unit=material.unit,
                    unit_price=money(item.unit_price),
                    total_price=line_total(item.quantity, item.unit_price),
                )
            )

        totals = compute_order_totals(
            sum_lines(i.total_price for i in po.items), po.tax_rate, True, po.discount_amount, po.paid_amount
        )
        po.subtotal = totals.subtotal
        po.tax_amount = totals.gst_amount
        po.total_amount = totals.total_amount
        po.outstanding_amount = totals.outstanding_amount

        supplier.total_orders += 1
        supplier.total_value = money(supplier.total_value + po.total_amount)
        await self.purchase_orders.add(po)
        await self.session.flush()
        logger.info("Created purchase order %s (%s) for supplier %s", po.id, po.order_number, supplier.id)
        return po

    # PUBLIC_INTERFACE
    async def approve(self, po_id: str, approved_by: str, approval_notes: Optional[str] = None) -> PurchaseOrder:
        """Approve a draft or pending order and mark its materials in transit."""
        po = await self._get(po_id, for_update=True)
        if po.status not in ("draft", "pending"):
            raise ConflictError(
                f"Only draft or pending purchase orders can be approved (is {po.status})",
                details={"id": po_id, "status": po.status},
            )
        po.approved_by = approved_by
        po.approved_at = utcnow()
        po.approval_notes = approval_notes
        self._record(po, "approved", approved_by, approval_notes)

        materials = await self.materials.get_materials((i.material_id for i in po.items), for_update=True)
        for material in materials.values():
            material.status = "in-transit"
        await self.session.flush()
        logger.info("Purchase order %s approved by %s", po_id, approved_by)
        return po

    # PUBLIC_INTERFACE
    async def mark_delivered(
        self,
        po_id: str,
        rating: Optional[float] = None,
        operator: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        """
        Book every line into stock and rate the supplier.

        Each line increases its material's stock at the line's unit price and
        appends an inbound StockMovement referencing this order.
        """
        po = await self._get(po_id, for_update=True)
        self._require_open(po)

        received = {}
        for item in po.items:
            material = await self.materials.get_material(item.material_id, for_update=True)
            if material is None:
                raise NotFoundError.for_entity("Raw material", item.material_id)
            received[material.id] = material
            await self.material_service.apply_stock_change(
                material,
                item.quantity,
                movement_type="in",
                reason="purchase",
                reference_id=po.id,
                reference_type="purchase_order",
                cost_per_unit=item.unit_price,
                operator=operator,
                notes=f"PO {po.order_number}",
            )
        # Another approved order may still be bringing the same material.
        for material_id in await self.purchase_orders.materials_in_transit(received, exclude_po_id=po.id):
            received[material_id].status = "in-transit"

        this_rating = to_decimal(rating if rating is not None else self.settings.DEFAULT_DELIVERY_RATING)
        supplier = await self.suppliers.get_supplier(po.supplier_id, for_update=True)
        if supplier is not None:
            supplier.performance_rating = weighted_rating(
                supplier.performance_rating, supplier.total_orders, this_rating
            )
        else:
            logger.warning("Supplier %s of purchase order %s no longer exists", po.supplier_id, po.id)

        po.actual_delivery = utcnow()
        po.delivery_rating = this_rating
        self._record(po, "delivered", operator, notes)
        await self.session.flush()
        logger.info("Purchase order %s delivered (%d line(s))", po_id, len(po.items))
        return po

    # PUBLIC_INTERFACE
    async def cancel(self, po_id: str, reason: Optional[str] = None) -> PurchaseOrder:
        """Cancel a not yet delivered order; in-transit materials get their stock status back."""
        po = await self._get(po_id, for_update=True)
        if po.status == "cancelled":
            return po
        if po.status == "delivered":
            raise ConflictError("A delivered purchase order cannot be cancelled", details={"id": po_id})

        materials = await self.materials.get_materials((i.material_id for i in po.items), for_update=True)
        still_ordered = await self.purchase_orders.materials_in_transit(materials, exclude_po_id=po.id)
        for material in materials.values():
            if material.status == "in-transit" and material.id not in still_ordered:
                self.material_service.refresh_derived(material)
        self._record(po, "cancelled", None, reason)
        await self.session.flush()
        logger.info("Purchase order %s cancelled", po_id)
        return po

    # PUBLIC_INTERFACE
    async def update_status(
        self,
        po_id: str,
        status: str,
        *,
        notes: Optional[str] = None,
        approved_by: Optional[str] = None,
        rating: Optional[float] = None,
    ) -> PurchaseOrder:
        """Generic transition; approved, delivered and cancelled use their workflows."""
        if status not in PURCHASE_ORDER_STATUSES:
            raise ValidationError(f"Unknown purchase order status: {status}")
        if status == "approved":
            if not approved_by:
                raise ValidationError("approved_by is required to approve a purchase order")
            return await self.approve(po_id, approved_by, notes)
        if status == "delivered":
            return await self.mark_delivered(po_id, rating=rating, notes=notes)
        if status == "cancelled":
            return await self.cancel(po_id, notes)

        po = await self._get(po_id, for_update=True)
        if po.status == status:
            return po
        self._require_open(po)
        if STATUS_RANK[status] < STATUS_RANK[po.status]:
            raise ConflictError(
                "Purchase order status cannot move backwards",
                details={"id": po_id, "from": po.status, "to": status},
            )
        self._record(po, status, None, notes)
        await self.session.flush()
        return po

    # PUBLIC_INTERFACE
    async def get(self, po_id: str) -> PurchaseOrder:
        return await self._get(po_id)

    # PUBLIC_INTERFACE
    async def list_purchase_orders(
        self,
        *,
        supplier_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PurchaseOrder]:
        return await self.purchase_orders.list_purchase_orders(
            supplier_id=supplier_id, status=status, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def stats(self) -> Dict[str, object]:
        summary = await self.purchase_orders.status_summary()
        return {
            "total_orders": sum(s["count"] for s in summary.values()),
            "total_value": float(sum((s["total_amount"] for s in summary.values()), money(0))),
            "by_status": {status: summary.get(status, {}).get("count", 0) for status in PURCHASE_ORDER_STATUSES},
        }
