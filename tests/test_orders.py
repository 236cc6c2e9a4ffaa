from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.db.models.sales import OrderItem
from carpet_inventory.schemas.sales import OrderCreate
from carpet_inventory.services.orders import OrderService
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.settlement import SettlementService, run_settlement
from carpet_inventory.services.units import UnitService
from tests import factories


async def advance(session, order_id: str, status: str):
    svc = OrderService(session)
    order = await svc.update_order_status(order_id, status)
    await svc.commit()
    return order


async def test_create_order_reserves_units_and_derives_totals(session):
    product, units = await factories.tracked_product(session, units=3)
    buyer = await factories.customer(session)

    order = await factories.order(
        session,
        factories.product_line(product, 2, unit_price=500, unit_ids=[units[0].id, units[1].id]),
        customer_id=buyer.id,
        customer_name=None,
        discount_amount=50,
        paid_amount=500,
    )

    assert order.status == "pending"
    assert order.customer_name == buyer.name
    assert order.subtotal == Decimal("1000.00")
    assert order.gst_amount == Decimal("180.00")
    assert order.total_amount == Decimal("1130.00")
    assert order.outstanding_amount == Decimal("630.00")
    assert order.payment_status == "partial"

    item = order.items[0]
    assert item.product_name == product.name
    assert item.is_fully_selected
    assert [e["status"] for e in item.selected_individual_products] == ["reserved", "reserved"]

    await session.refresh(product)
    assert product.current_stock == 1
    await session.refresh(buyer)
    assert buyer.total_orders == 1
    assert buyer.total_value == Decimal("1130.00")


async def test_create_order_with_taken_unit_fails_whole_request(session):
    product, units = await factories.tracked_product(session, units=2)
    taken, free = units[0].id, units[1].id
    await factories.order(session, factories.product_line(product, 1, unit_ids=[taken]))

    svc = OrderService(session)
    with pytest.raises(ConflictError):
        await svc.create_order(
            OrderCreate(
                customer_name="Second buyer",
                items=[factories.product_line(product, 2, unit_ids=[free, taken])],
            )
        )
    await svc.rollback()

    assert (await UnitService(session).get_unit(free)).status == "available"


async def test_selection_cannot_exceed_line_quantity(session):
    product, units = await factories.tracked_product(session, units=2)

    with pytest.raises(ValidationError):
        await factories.order(session, factories.product_line(product, 1, unit_ids=[u.id for u in units]))


async def test_dispatch_sells_units_and_settles_once(session):
    product, units = await factories.tracked_product(session, units=3)
    order = await factories.order(session, factories.product_line(product, 2, unit_ids=[units[0].id, units[1].id]))

    dispatched = await advance(session, order.id, "dispatched")

    assert dispatched.status == "dispatched"
    assert dispatched.dispatched_at is not None
    assert [e["status"] for e in dispatched.items[0].selected_individual_products] == ["sold", "sold"]
    sold = await UnitService(session).get_unit(units[0].id)
    assert sold.status == "sold"
    assert sold.order_id == order.id
    assert sold.sold_date is not None
    await session.refresh(product)
    assert product.current_stock == 1

    settlements = SettlementService(session)
    row = await settlements.settle(order.id)
    assert row.state == "completed"
    assert row.attempts == 1

    await advance(session, order.id, "delivered")
    row = await settlements.settle(order.id)
    assert row.state == "completed"
    assert row.attempts == 1
    assert row.trigger_status == "dispatched"


async def test_bulk_product_deducted_once_across_dispatch_and_delivery(session):
    product = await factories.bulk_product(session, base_quantity=40)
    order = await factories.order(session, factories.product_line(product, 5))
    settlements = SettlementService(session)

    await advance(session, order.id, "dispatched")
    await settlements.settle(order.id)
    await advance(session, order.id, "delivered")
    await settlements.settle(order.id)

    await session.refresh(product)
    assert product.base_quantity == 35
    assert product.current_stock == 35


async def test_settlement_runs_in_its_own_session(session, session_maker):
    product = await factories.bulk_product(session, base_quantity=10)
    order = await factories.order(session, factories.product_line(product, 4))
    await advance(session, order.id, "dispatched")

    await run_settlement(session_maker, order.id)

    await session.refresh(product)
    assert product.base_quantity == 6
    row = await SettlementService(session).get(order.id)
    await session.refresh(row)
    assert row.state == "completed"


async def test_raw_material_line_reserves_then_deducts(session):
    material = await factories.raw_material(session, current_stock=500)
    order = await factories.order(session, factories.material_line(material, 10))
    await session.refresh(material)
    assert material.reserved_stock == Decimal("10")

    await advance(session, order.id, "dispatched")
    await SettlementService(session).settle(order.id)

    await session.refresh(material)
    assert material.current_stock == Decimal("490")
    assert material.reserved_stock == Decimal("0")
    history = await RawMaterialService(session).stock_history(material.id)
    assert history[0].movement_type == "out"
    assert history[0].reason == "sale"
    assert history[0].reference_id == order.id
    assert history[0].reference_type == "order"


async def test_failed_settlement_is_recorded_and_retried(session):
    material = await factories.raw_material(session)
    order = await factories.order(session, factories.material_line(material, 10))
    await session.delete(material)
    await session.commit()
    await advance(session, order.id, "dispatched")

    settlements = SettlementService(session)
    row = await settlements.settle(order.id)
    assert row.state == "failed"
    assert row.attempts == 1
    assert "Raw material not found" in row.last_error

    retried = await settlements.process_pending()
    assert [r.order_id for r in retried] == [order.id]
    assert retried[0].attempts == 2
    assert retried[0].state == "failed"


async def test_status_only_moves_forward(session):
    product, _ = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1))

    ready = await advance(session, order.id, "ready")
    assert ready.status == "ready"

    with pytest.raises(ConflictError):
        await OrderService(session).update_order_status(order.id, "accepted")


async def test_same_status_is_a_noop(session):
    product, _ = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1))

    accepted = await advance(session, order.id, "accepted")
    stamp = accepted.accepted_at
    again = await advance(session, order.id, "accepted")

    assert again.accepted_at.replace(tzinfo=None) == stamp.replace(tzinfo=None)


@pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
async def test_terminal_orders_accept_no_transition(session, terminal):
    product, _ = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1))
    await advance(session, order.id, terminal)

    target = "cancelled" if terminal == "delivered" else "accepted"
    with pytest.raises(ConflictError):
        await OrderService(session).update_order_status(order.id, target)


async def test_cancel_releases_units_and_material(session):
    product, units = await factories.tracked_product(session, units=2)
    material = await factories.raw_material(session)
    order = await factories.order(
        session,
        factories.product_line(product, 2, unit_ids=[u.id for u in units]),
        factories.material_line(material, 25),
    )

    cancelled = await advance(session, order.id, "cancelled")

    assert cancelled.cancelled_at is not None
    product_item = next(i for i in cancelled.items if i.product_type == "product")
    assert {e["status"] for e in product_item.selected_individual_products} == {"released"}
    unit = await UnitService(session).get_unit(units[0].id)
    assert unit.status == "available"
    assert unit.order_id is None
    await session.refresh(product)
    assert product.current_stock == 2
    await session.refresh(material)
    assert material.reserved_stock == Decimal("0")


async def test_cancel_after_dispatch_keeps_units_sold(session):
    product, units = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1, unit_ids=[units[0].id]))
    await advance(session, order.id, "dispatched")

    await advance(session, order.id, "cancelled")

    assert (await UnitService(session).get_unit(units[0].id)).status == "sold"


async def test_select_units_swaps_reservations(session):
    product, units = await factories.tracked_product(session, units=3)
    order = await factories.order(session, factories.product_line(product, 2, unit_ids=[units[0].id]))
    svc = OrderService(session)

    item = await svc.select_units(order.id, order.items[0].id, [units[1].id, units[2].id])
    await svc.commit()

    assert item.selected_unit_ids == [units[1].id, units[2].id]
    unit_svc = UnitService(session)
    assert (await unit_svc.get_unit(units[0].id)).status == "available"
    assert (await unit_svc.get_unit(units[1].id)).order_id == order.id


async def test_lines_are_frozen_after_dispatch(session):
    product, units = await factories.tracked_product(session, units=2)
    order = await factories.order(session, factories.product_line(product, 1))
    await advance(session, order.id, "dispatched")

    with pytest.raises(ConflictError):
        await OrderService(session).select_units(order.id, order.items[0].id, [units[0].id])


async def test_add_and_remove_items(session):
    product, _ = await factories.tracked_product(session, units=1)
    bulk = await factories.bulk_product(session)
    order = await factories.order(session, factories.product_line(product, 1, unit_price=100))
    svc = OrderService(session)

    order = await svc.add_item(order.id, factories.product_line(bulk, 2, unit_price=50))
    await svc.commit()
    assert order.subtotal == Decimal("200.00")

    order = await svc.remove_item(order.id, order.items[0].id)
    await svc.commit()
    assert len(order.items) == 1
    assert order.subtotal == Decimal("100.00")

    with pytest.raises(ValidationError):
        await svc.remove_item(order.id, order.items[0].id)


async def test_payment_and_gst_updates_recompute_totals(session):
    product, _ = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 2, unit_price=500))
    svc = OrderService(session)

    order = await svc.update_payment(order.id, 1180)
    assert order.outstanding_amount == Decimal("0.00")
    assert order.payment_status == "paid"

    order = await svc.update_gst(order.id, gst_included=False)
    assert order.total_amount == Decimal("1000.00")
    assert order.outstanding_amount == Decimal("-180.00")
    await svc.commit()

    with pytest.raises(ValidationError):
        await svc.update_payment(order.id, -1)


async def test_dispatched_order_cannot_be_deleted(session):
    product, _ = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1))
    await advance(session, order.id, "dispatched")

    with pytest.raises(ConflictError):
        await OrderService(session).delete_order(order.id)


async def test_delete_pending_order_releases_units(session):
    product, units = await factories.tracked_product(session, units=1)
    order = await factories.order(session, factories.product_line(product, 1, unit_ids=[units[0].id]))
    svc = OrderService(session)

    await svc.delete_order(order.id)
    await svc.commit()

    assert (await UnitService(session).get_unit(units[0].id)).status == "available"
    with pytest.raises(NotFoundError):
        await svc.get_order(order.id)


async def test_lines_created_together_keep_their_order(session):
    bulk = await factories.bulk_product(session)
    order = await factories.order(
        session, *[factories.product_line(bulk, 1, unit_price=price) for price in (300, 200, 100)]
    )
    item_ids = [i.id for i in order.items]
    await session.execute(
        update(OrderItem)
        .where(OrderItem.order_id == order.id)
        .values(created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    )
    await session.commit()
    session.expunge_all()

    reloaded = await OrderService(session).get_order(order.id)

    assert [i.id for i in reloaded.items] == sorted(item_ids)
    assert [i.unit_price for i in reloaded.items] == [Decimal("300.00"), Decimal("200.00"), Decimal("100.00")]


async def test_releasing_a_unit_directly_drops_it_from_the_order(session):
    product, units = await factories.tracked_product(session, units=3)
    first, second = units[0].id, units[1].id
    order_a = await factories.order(session, factories.product_line(product, 2, unit_ids=[first, second]))
    unit_svc = UnitService(session)

    await unit_svc.change_status(first, "available")
    await unit_svc.commit()
    assert order_a.items[0].selected_unit_ids == [second]

    order_b = await factories.order(session, factories.product_line(product, 1, unit_ids=[first]))
    dispatched = await advance(session, order_a.id, "dispatched")

    assert dispatched.status == "dispatched"
    assert (await unit_svc.get_unit(second)).status == "sold"
    taken = await unit_svc.get_unit(first)
    assert taken.status == "reserved"
    assert taken.order_id == order_b.id


async def test_units_reserved_outside_the_order_are_sold_with_it(session):
    product, units = await factories.tracked_product(session, units=3)
    picked, extra = units[0].id, units[1].id
    order = await factories.order(session, factories.product_line(product, 2, unit_ids=[picked]))
    unit_svc = UnitService(session)

    await unit_svc.reserve([extra], order.id)
    await unit_svc.commit()
    assert order.items[0].selected_unit_ids == [picked, extra]

    await advance(session, order.id, "dispatched")
    delivered = await advance(session, order.id, "delivered")

    assert (await unit_svc.get_unit(extra)).status == "sold"
    assert [e["status"] for e in delivered.items[0].selected_individual_products] == ["sold", "sold"]


async def test_reserved_unit_without_room_on_a_line_is_still_sold(session):
    product, units = await factories.tracked_product(session, units=2)
    picked, extra = units[0].id, units[1].id
    order = await factories.order(session, factories.product_line(product, 1, unit_ids=[picked]))
    unit_svc = UnitService(session)
    await unit_svc.reserve([extra], order.id)
    await unit_svc.commit()
    assert order.items[0].selected_unit_ids == [picked]

    await advance(session, order.id, "dispatched")

    sold = await unit_svc.get_unit(extra)
    assert sold.status == "sold"
    assert sold.order_id == order.id
    await session.refresh(product)
    assert product.current_stock == 0
