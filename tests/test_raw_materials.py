from __future__ import annotations

from decimal import Decimal

import pytest

from carpet_inventory.core.errors import NotFoundError, ValidationError
from carpet_inventory.schemas.inventory import RawMaterialUpdate, StockAdjustment
from carpet_inventory.services.raw_materials import RawMaterialService
from tests import factories


@pytest.mark.parametrize(
    "stock, expected",
    [(0, "out-of-stock"), (15, "low-stock"), (500, "in-stock"), (2500, "overstock")],
)
async def test_created_material_gets_status_band(session, stock, expected):
    material = await factories.raw_material(session, current_stock=stock, min_threshold=20, max_capacity=2000)

    assert material.status == expected
    assert material.total_value == Decimal(stock * 400).quantize(Decimal("0.01"))


async def test_adjustment_records_movement(session):
    material = await factories.raw_material(session, current_stock=500)
    svc = RawMaterialService(session)

    await svc.adjust_stock(material.id, StockAdjustment(quantity=30, operator="store-1"))
    await svc.adjust_stock(material.id, StockAdjustment(quantity=-80, reason="waste", notes="moth damage"))
    await svc.commit()

    assert material.current_stock == Decimal("450")
    latest, earlier = await svc.stock_history(material.id)
    assert (earlier.movement_type, earlier.quantity, earlier.reason) == ("in", Decimal("30"), "adjustment")
    assert (latest.movement_type, latest.quantity, latest.reason) == ("out", Decimal("80"), "waste")
    assert latest.previous_stock == Decimal("530")
    assert latest.new_stock == Decimal("450")
    assert latest.total_cost == Decimal("32000.00")


async def test_adjustment_cannot_go_negative(session):
    material = await factories.raw_material(session, current_stock=10)
    svc = RawMaterialService(session)

    with pytest.raises(ValidationError) as exc:
        await svc.adjust_stock(material.id, StockAdjustment(quantity=-11))

    assert exc.value.message == "Insufficient stock"
    assert material.current_stock == Decimal("10")


async def test_zero_adjustment_is_rejected(session):
    material = await factories.raw_material(session)

    with pytest.raises(ValidationError):
        await RawMaterialService(session).adjust_stock(material.id, StockAdjustment(quantity=0))


async def test_update_recomputes_status_unless_given(session):
    material = await factories.raw_material(session, current_stock=500, min_threshold=100)
    svc = RawMaterialService(session)

    updated = await svc.update(material.id, RawMaterialUpdate(min_threshold=600))
    assert updated.status == "low-stock"

    updated = await svc.update(material.id, RawMaterialUpdate(status="in-transit"))
    await svc.commit()
    assert updated.status == "in-transit"


async def test_update_links_supplier_by_id(session):
    vendor = await factories.supplier(session)
    material = await factories.raw_material(session)
    svc = RawMaterialService(session)

    updated = await svc.update(material.id, RawMaterialUpdate(supplier_id=vendor.id))
    await svc.commit()

    assert updated.supplier_name == vendor.name

    with pytest.raises(NotFoundError):
        await svc.update(material.id, RawMaterialUpdate(supplier_id="SUP-000000-999"))


async def test_reorder_candidates_and_stats(session):
    low = await factories.raw_material(session, current_stock=50, min_threshold=100, name="Indigo Dye")
    await factories.raw_material(session, current_stock=500, min_threshold=100)
    svc = RawMaterialService(session)

    candidates = await svc.reorder_candidates()
    stats = await svc.stats()

    assert [m.id for m in candidates] == [low.id]
    assert stats["total_materials"] == 2
    assert stats["by_status"]["low-stock"] == 1
