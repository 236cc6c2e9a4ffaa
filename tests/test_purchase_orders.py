from __future__ import annotations

from decimal import Decimal

import pytest

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.schemas.procurement import PurchaseOrderCreate, PurchaseOrderItemCreate
from carpet_inventory.services.purchase_orders import PurchaseOrderService
from carpet_inventory.services.raw_materials import RawMaterialService
from tests import factories


async def _purchase_order(session, quantity=50, unit_price=10, **fields):
    vendor = await factories.supplier(session)
    material = await factories.raw_material(
        session, current_stock=100, min_threshold=20, max_capacity=1000, supplier_id=vendor.id
    )
    svc = PurchaseOrderService(session)
    po = await svc.create(
        PurchaseOrderCreate(
            supplier_id=vendor.id,
            items=[PurchaseOrderItemCreate(material_id=material.id, quantity=quantity, unit_price=unit_price)],
            **fields,
        )
    )
    await svc.commit()
    return svc, po, vendor, material


async def test_create_derives_totals_and_counts_supplier_order(session):
    _, po, vendor, material = await _purchase_order(session)

    assert po.status == "draft"
    assert po.order_number.startswith("ON-")
    assert po.items[0].material_name == material.name
    assert po.items[0].unit == "kg"
    assert po.subtotal == Decimal("500.00")
    assert po.tax_amount == Decimal("90.00")
    assert po.total_amount == Decimal("590.00")
    assert [h["status"] for h in po.status_history] == ["draft"]
    await session.refresh(vendor)
    assert vendor.total_orders == 1
    assert vendor.total_value == Decimal("590.00")


async def test_create_rejects_unknown_material(session):
    vendor = await factories.supplier(session)

    with pytest.raises(NotFoundError):
        await PurchaseOrderService(session).create(
            PurchaseOrderCreate(
                supplier_id=vendor.id,
                items=[PurchaseOrderItemCreate(material_id="MAT-000000-999", quantity=1, unit_price=1)],
            )
        )


async def test_approve_puts_materials_in_transit(session):
    svc, po, _, material = await _purchase_order(session)

    approved = await svc.approve(po.id, "purchasing-head", "ok")
    await svc.commit()

    assert approved.status == "approved"
    assert approved.approved_by == "purchasing-head"
    assert approved.approved_at is not None
    assert [h["status"] for h in approved.status_history] == ["draft", "approved"]
    await session.refresh(material)
    assert material.status == "in-transit"

    with pytest.raises(ConflictError):
        await svc.approve(po.id, "someone-else")


async def test_delivery_books_stock_and_rates_supplier(session):
    svc, po, vendor, material = await _purchase_order(session, quantity=50, unit_price=12)
    await svc.approve(po.id, "purchasing-head")

    delivered = await svc.mark_delivered(po.id, rating=9, operator="dock-2")
    await svc.commit()

    assert delivered.status == "delivered"
    assert delivered.actual_delivery is not None
    assert delivered.delivery_rating == Decimal("9")
    await session.refresh(material)
    assert material.current_stock == Decimal("150")
    assert material.status == "in-stock"
    assert material.cost_per_unit == Decimal("12.00")
    await session.refresh(vendor)
    assert vendor.performance_rating == Decimal("7.0")

    movement = (await RawMaterialService(session).stock_history(material.id))[0]
    assert movement.movement_type == "in"
    assert movement.reason == "purchase"
    assert movement.reference_id == po.id
    assert movement.reference_type == "purchase_order"
    assert movement.previous_stock == Decimal("100")
    assert movement.new_stock == Decimal("150")
    assert movement.operator == "dock-2"


async def test_delivery_without_rating_uses_default(session):
    svc, po, vendor, _ = await _purchase_order(session)

    await svc.mark_delivered(po.id)
    await svc.commit()

    await session.refresh(vendor)
    # (5 * 1 + 8) / 2
    assert vendor.performance_rating == Decimal("6.5")


async def test_cancel_restores_material_status(session):
    svc, po, _, material = await _purchase_order(session)
    await svc.approve(po.id, "purchasing-head")

    cancelled = await svc.cancel(po.id, "supplier out of stock")
    await svc.commit()

    assert cancelled.status == "cancelled"
    await session.refresh(material)
    assert material.status == "in-stock"
    assert material.current_stock == Decimal("100")

    again = await svc.cancel(po.id)
    assert again.status == "cancelled"


async def test_delivered_order_cannot_be_cancelled(session):
    svc, po, _, _ = await _purchase_order(session)
    await svc.mark_delivered(po.id)
    await svc.commit()

    with pytest.raises(ConflictError):
        await svc.cancel(po.id)
    with pytest.raises(ConflictError):
        await svc.mark_delivered(po.id)


async def test_generic_status_updates(session):
    svc, po, _, _ = await _purchase_order(session, status="pending")

    shipped = await svc.update_status(po.id, "shipped")
    assert shipped.status == "shipped"

    with pytest.raises(ConflictError):
        await svc.update_status(po.id, "pending")
    with pytest.raises(ValidationError):
        await svc.update_status(po.id, "approved")


async def test_stats_count_by_status(session):
    svc, po, _, _ = await _purchase_order(session)

    stats = await svc.stats()

    assert stats["total_orders"] == 1
    assert stats["total_value"] == 590.0
    assert stats["by_status"]["draft"] == 1
    assert stats["by_status"]["delivered"] == 0


async def _second_order(svc, vendor, material, quantity=20):
    po = await svc.create(
        PurchaseOrderCreate(
            supplier_id=vendor.id,
            items=[PurchaseOrderItemCreate(material_id=material.id, quantity=quantity, unit_price=10)],
        )
    )
    await svc.commit()
    return po


async def test_cancel_keeps_material_in_transit_for_other_orders(session):
    svc, first, vendor, material = await _purchase_order(session)
    second = await _second_order(svc, vendor, material)
    await svc.approve(first.id, "purchasing-head")
    await svc.approve(second.id, "purchasing-head")
    await svc.commit()

    await svc.cancel(first.id)
    await svc.commit()
    await session.refresh(material)
    assert material.status == "in-transit"

    await svc.cancel(second.id)
    await svc.commit()
    await session.refresh(material)
    assert material.status == "in-stock"


async def test_delivery_keeps_material_in_transit_for_other_orders(session):
    svc, first, vendor, material = await _purchase_order(session, quantity=50)
    second = await _second_order(svc, vendor, material, quantity=20)
    await svc.approve(first.id, "purchasing-head")
    await svc.approve(second.id, "purchasing-head")
    await svc.commit()

    await svc.mark_delivered(first.id)
    await svc.commit()
    await session.refresh(material)
    assert material.current_stock == Decimal("150")
    assert material.status == "in-transit"

    await svc.mark_delivered(second.id)
    await svc.commit()
    await session.refresh(material)
    assert material.current_stock == Decimal("170")
    assert material.status == "in-stock"
