"""
Order fulfillment workflow.

    pending -> accepted -> in_production -> ready -> dispatched -> delivered
    any state except delivered -> cancelled

Transitions only move forward (skipping steps is allowed); delivered and
cancelled are terminal. Unit reservations, sales and releases happen in the
same transaction as the status write. Bulk stock deductions are delegated to
the settlement outbox and run after commit.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.core.logging import order_id_var
from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.catalog import IndividualProduct
from carpet_inventory.db.models.sales import ORDER_STATUSES, Order, OrderItem
from carpet_inventory.repositories.catalog import IndividualProductRepository, ProductRepository
from carpet_inventory.repositories.inventory import StockSettlementRepository
from carpet_inventory.repositories.sales import CustomerRepository, OrderRepository
from carpet_inventory.schemas.sales import OrderCreate, OrderItemCreate
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.pricing import compute_order_totals, line_total, money, sum_lines, to_decimal
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.settlement import SettlementService
from carpet_inventory.services.units import UnitService, selection_entry, with_status

logger = logging.getLogger(__name__)

STATUS_RANK: Dict[str, int] = {
    "pending": 0,
    "accepted": 1,
    "in_production": 2,
    "ready": 3,
    "dispatched": 4,
    "delivered": 5,
}
TERMINAL_STATUSES = ("delivered", "cancelled")
# Lines and selections are frozen once goods have left.
EDITABLE_STATUSES = ("pending", "accepted", "in_production", "ready")
SETTLING_STATUSES = ("dispatched", "delivered")


class OrderService(BaseService):
    """Creates orders and drives them through the fulfillment workflow."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.orders = OrderRepository(session)
        self.customers = CustomerRepository(session)
        self.products = ProductRepository(session)
        self.unit_repo = IndividualProductRepository(session)
        self.settlement_repo = StockSettlementRepository(session)
        self.units = UnitService(session)
        self.materials = RawMaterialService(session)
        self.settlements = SettlementService(session)
        self.allocator = SequenceAllocator(session)

    async def _get(self, order_id: str, *, for_update: bool = False) -> Order:
        order = await self.orders.get_order(order_id, for_update=for_update)
        if order is None:
            raise NotFoundError.for_entity("Order", order_id)
        return order

    @staticmethod
    def _find_item(order: Order, item_id: str) -> OrderItem:
        for item in order.items:
            if item.id == item_id:
                return item
        raise NotFoundError("Order item not found", details={"order_id": order.id, "item_id": item_id})

    @staticmethod
    def _require_editable(order: Order) -> None:
        if order.status not in EDITABLE_STATUSES:
            raise ConflictError(
                f"Order is {order.status}; its lines can no longer change",
                details={"order_id": order.id, "status": order.status},
            )

    # PUBLIC_INTERFACE
    def apply_totals(self, order: Order) -> None:
        """Derive subtotal and the money fields from the current lines."""
        totals = compute_order_totals(
            sum_lines(i.total_price for i in order.items),
            order.gst_rate,
            order.gst_included,
            order.discount_amount,
            order.paid_amount,
        )
        order.subtotal = totals.subtotal
        order.gst_amount = totals.gst_amount
        order.total_amount = totals.total_amount
        order.outstanding_amount = totals.outstanding_amount

    async def _build_item(self, order: Order, payload: OrderItemCreate) -> OrderItem:
        """New line with name and unit copied from its product or material."""
        if payload.product_type == "raw_material":
            material = await self.materials.find_for_line(payload.raw_material_id, "")
            name, unit = material.name, material.unit
            material.reserved_stock = material.reserved_stock + Decimal(payload.quantity)
            if material.reserved_stock > material.current_stock:
                logger.warning(
                    "Raw material %s reserved beyond stock (%s > %s)",
                    material.id, material.reserved_stock, material.current_stock,
                )
        else:
            product = await self.products.get_product(payload.product_id)
            if product is None:
                raise NotFoundError.for_entity("Product", payload.product_id)
            name, unit = product.name, product.unit

        return OrderItem(
            id=await self.allocator.order_item_id(),
            order_id=order.id,
            product_type=payload.product_type,
            product_id=payload.product_id if payload.product_type == "product" else None,
            raw_material_id=payload.raw_material_id if payload.product_type == "raw_material" else None,
            product_name=name,
            quantity=payload.quantity,
            unit=unit,
            unit_price=money(payload.unit_price),
            total_price=line_total(payload.quantity, payload.unit_price, payload.total_price),
            quality_grade=payload.quality_grade,
            specifications=payload.specifications,
            selected_individual_products=[],
        )

    async def _check_units(self, item: OrderItem, unit_ids: List[str]) -> Dict[str, IndividualProduct]:
        """Units must exist and belong to the line's product."""
        units = {u.id: u for u in await self.unit_repo.get_units(unit_ids)}
        missing = [i for i in unit_ids if i not in units]
        if missing:
            raise NotFoundError("Individual product not found", details={"ids": missing})
        foreign = [u.id for u in units.values() if u.product_id != item.product_id]
        if foreign:
            raise ValidationError(
                "Units belong to a different product",
                details={"ids": foreign, "product_id": item.product_id},
            )
        return units

    async def _allocate(self, order: Order, item: OrderItem, unit_ids: List[str]) -> None:
        ids = list(dict.fromkeys(unit_ids))
        if not ids:
            return
        if item.product_type != "product":
            raise ValidationError("Only product lines can select individual units", details={"item_id": item.id})
        if len(ids) > item.quantity:
            raise ValidationError(
                "More units selected than the line quantity",
                details={"item_id": item.id, "quantity": item.quantity, "selected": len(ids)},
            )
        await self._check_units(item, ids)
        reserved = await self.units.reserve(ids, order.id, sync_order=False)
        item.selected_individual_products = [selection_entry(u, "reserved") for u in reserved]

    async def _release_material(self, item: OrderItem) -> None:
        material = await self.materials.find_for_line(item.raw_material_id, item.product_name)
        material.reserved_stock = max(material.reserved_stock - Decimal(item.quantity), Decimal("0"))

    # PUBLIC_INTERFACE
    async def create_order(self, payload: OrderCreate) -> Order:
        """
        Create an order, reserve its selected units and raw material quantities.

        Parameters:
            payload: OrderCreate request
        Returns:
            The pending order with its lines and derived totals.
        Raises:
            NotFoundError: unknown customer, product, material or unit.
            ValidationError: a selection exceeds its line quantity or crosses products.
            ConflictError: a selected unit is not available.
        """
        customer = None
        if payload.customer_id:
            customer = await self.customers.get_customer(payload.customer_id, for_update=True)
            if customer is None:
                raise NotFoundError.for_entity("Customer", payload.customer_id)

        now = utcnow()
        order = Order(
            id=await self.allocator.order_id(),
            order_number=await self.allocator.order_number(),
            customer_id=customer.id if customer else None,
            customer_name=payload.customer_name or customer.name,
            customer_email=payload.customer_email or (customer.email if customer else None),
            customer_phone=payload.customer_phone or (customer.phone if customer else None),
            status="pending",
            workflow_step="accept",
            priority=payload.priority,
            gst_rate=to_decimal(payload.gst_rate),
            gst_included=payload.gst_included,
            discount_amount=money(payload.discount_amount),
            paid_amount=money(payload.paid_amount),
            order_date=now,
            expected_delivery=payload.expected_delivery,
            special_instructions=payload.special_instructions,
            notes=payload.notes,
            items=[],
        )
        token = order_id_var.set(order.id)
        try:
            await self.orders.add(order)
            lines = []
            for item_payload in payload.items:
                item = await self._build_item(order, item_payload)
                order.items.append(item)
                lines.append((item, item_payload.individual_product_ids))
            await self.session.flush()

            for item, unit_ids in lines:
                await self._allocate(order, item, unit_ids)

            self.apply_totals(order)
            if customer is not None:
                customer.total_orders += 1
                customer.total_value = money(customer.total_value + order.total_amount)
                customer.last_order_date = now
            await self.session.flush()
            logger.info("Created order %s (%s) with %d line(s)", order.id, order.order_number, len(lines))
            return order
        finally:
            order_id_var.reset(token)

    # PUBLIC_INTERFACE
    async def update_order_status(self, order_id: str, new_status: str, notes: Optional[str] = None) -> Order:
        """
        Move an order to new_status and apply its inventory effects.

        dispatched and delivered sell the selected units and register the
        stock settlement; cancelled releases everything still reserved.
        Setting the current status again is a no-op.

        Raises:
            ConflictError: backward move or a transition out of a terminal state.
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {new_status}")
        token = order_id_var.set(order_id)
        try:
            order = await self._get(order_id, for_update=True)
            current = order.status
            if new_status == current:
                return order
            if current in TERMINAL_STATUSES:
                raise ConflictError(
                    f"Order is {current}; no further transitions are allowed",
                    details={"order_id": order_id, "status": current},
                )
            if new_status != "cancelled" and STATUS_RANK[new_status] < STATUS_RANK[current]:
                raise ConflictError(
                    "Order status cannot move backwards",
                    details={"order_id": order_id, "from": current, "to": new_status},
                )

            now = utcnow()
            if new_status == "accepted":
                order.accepted_at = now
                order.workflow_step = "dispatch"
            elif new_status in SETTLING_STATUSES:
                if new_status == "dispatched":
                    order.dispatched_at = now
                else:
                    order.delivered_at = now
                order.workflow_step = "delivered"
                await self._sell_selected(order)
                await self.settlements.ensure(order.id, new_status)
            elif new_status == "cancelled":
                order.cancelled_at = now
                await self._cancel(order, current)

            order.status = new_status
            if notes:
                order.notes = f"{order.notes}\n{notes}" if order.notes else notes
            await self.session.flush()
            logger.info("Order %s moved %s -> %s", order_id, current, new_status)
            return order
        finally:
            order_id_var.reset(token)

    async def _sell_selected(self, order: Order) -> None:
        """Sell the selected units plus any unit still reserved for the order."""
        lines = [i for i in order.items if i.product_type == "product"]
        selected = [unit_id for item in lines for unit_id in item.selected_unit_ids]
        held = await self.unit_repo.reserved_unit_ids_for_order(order.id)
        unit_ids = list(dict.fromkeys([*selected, *held]))
        if unit_ids:
            await self.units.mark_sold(unit_ids, order.id)
        for item in lines:
            picked = len(item.selected_individual_products or [])
            if 0 < picked < item.quantity:
                logger.warning(
                    "Order %s line %s ships %d of %d units selected", order.id, item.id, picked, item.quantity
                )

    async def _cancel(self, order: Order, previous_status: str) -> None:
        if previous_status == "dispatched":
            logger.warning("Cancelling dispatched order %s; sold units stay sold", order.id)
        reserved = set(await self.unit_repo.reserved_unit_ids_for_order(order.id))
        await self.units.release_for_order(order.id, sync_order=False)
        for item in order.items:
            if reserved & set(item.selected_unit_ids):
                item.selected_individual_products = with_status(
                    item.selected_individual_products, reserved, "released"
                )

        if await self.settlement_repo.get(order.id) is None:
            for item in order.items:
                if item.product_type == "raw_material":
                    await self._release_material(item)

    # PUBLIC_INTERFACE
    async def select_units(self, order_id: str, item_id: str, unit_ids: List[str]) -> OrderItem:
        """
        Replace the units allocated to one product line.

        Units dropped from the selection are released, new ones reserved, and
        units kept keep their original allocation entry.
        """
        token = order_id_var.set(order_id)
        try:
            order = await self._get(order_id, for_update=True)
            self._require_editable(order)
            item = self._find_item(order, item_id)
            if item.product_type != "product":
                raise ValidationError("Only product lines can select individual units", details={"item_id": item_id})

            wanted = list(dict.fromkeys(unit_ids))
            if len(wanted) > item.quantity:
                raise ValidationError(
                    "More units selected than the line quantity",
                    details={"item_id": item_id, "quantity": item.quantity, "selected": len(wanted)},
                )
            current = {e["individual_product_id"]: e for e in item.selected_individual_products or []}
            to_release = [i for i in current if i not in wanted]
            to_reserve = [i for i in wanted if i not in current]

            if to_reserve:
                await self._check_units(item, to_reserve)
            await self.units.release(to_release, order.id, sync_order=False)
            reserved = {u.id: u for u in await self.units.reserve(to_reserve, order.id, sync_order=False)}

            item.selected_individual_products = [
                dict(current[i]) if i in current else selection_entry(reserved[i], "reserved") for i in wanted
            ]
            await self.session.flush()
            logger.info(
                "Order %s line %s selection: +%d -%d", order_id, item_id, len(to_reserve), len(to_release)
            )
            return item
        finally:
            order_id_var.reset(token)

    # PUBLIC_INTERFACE
    async def add_item(self, order_id: str, payload: OrderItemCreate) -> Order:
        """Append a line to an order that has not been dispatched."""
        order = await self._get(order_id, for_update=True)
        self._require_editable(order)
        item = await self._build_item(order, payload)
        order.items.append(item)
        await self.session.flush()
        await self._allocate(order, item, payload.individual_product_ids)
        self.apply_totals(order)
        await self.session.flush()
        return order

    # PUBLIC_INTERFACE
    async def remove_item(self, order_id: str, item_id: str) -> Order:
        """Drop a line, releasing whatever it held."""
        order = await self._get(order_id, for_update=True)
        self._require_editable(order)
        item = self._find_item(order, item_id)
        if len(order.items) == 1:
            raise ValidationError("An order must keep at least one item", details={"order_id": order_id})
        await self.units.release(item.selected_unit_ids, order.id, sync_order=False)
        if item.product_type == "raw_material":
            await self._release_material(item)
        order.items.remove(item)
        self.apply_totals(order)
        await self.session.flush()
        return order

    # PUBLIC_INTERFACE
    async def update_payment(self, order_id: str, paid_amount: float) -> Order:
        if paid_amount < 0:
            raise ValidationError("Paid amount must not be negative", details={"paid_amount": paid_amount})
        order = await self._get(order_id, for_update=True)
        order.paid_amount = money(paid_amount)
        self.apply_totals(order)
        await self.session.flush()
        return order

    # PUBLIC_INTERFACE
    async def update_gst(self, order_id: str, gst_rate: Optional[float] = None, gst_included: Optional[bool] = None) -> Order:
        order = await self._get(order_id, for_update=True)
        if gst_rate is not None:
            if not 0 <= gst_rate <= 100:
                raise ValidationError("GST rate must be between 0 and 100", details={"gst_rate": gst_rate})
            order.gst_rate = to_decimal(gst_rate)
        if gst_included is not None:
            order.gst_included = gst_included
        self.apply_totals(order)
        await self.session.flush()
        return order

    # PUBLIC_INTERFACE
    async def delete_order(self, order_id: str) -> None:
        """
        Delete an order that never left the warehouse.

        Raises:
            ConflictError: the order was dispatched or delivered.
        """
        order = await self._get(order_id, for_update=True)
        if order.status in SETTLING_STATUSES:
            raise ConflictError(
                f"A {order.status} order cannot be deleted", details={"order_id": order_id}
            )
        if order.status != "cancelled":
            await self.units.release_for_order(order.id, sync_order=False)
            for item in order.items:
                if item.product_type == "raw_material":
                    await self._release_material(item)
        await self.orders.delete(order)
        await self.session.flush()
        logger.info("Deleted order %s", order_id)

    # PUBLIC_INTERFACE
    async def get_order(self, order_id: str) -> Order:
        return await self._get(order_id)

    # PUBLIC_INTERFACE
    async def list_orders(
        self,
        *,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        return await self.orders.list_orders(
            status=status, customer_id=customer_id, search=search, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def order_stats(self) -> Dict[str, object]:
        """Counts by status plus revenue totals of non-cancelled orders."""
        counts = await self.orders.status_counts()
        by_status = {status: counts.get(status, 0) for status in ORDER_STATUSES}
        totals = await self.orders.revenue_totals()
        return {
            "total_orders": sum(counts.values()),
            "by_status": by_status,
            "total_revenue": float(totals["total_revenue"]),
            "paid_amount": float(totals["paid_amount"]),
            "outstanding_amount": float(totals["outstanding_amount"]),
        }
