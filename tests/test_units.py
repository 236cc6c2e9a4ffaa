from __future__ import annotations

import asyncio

import pytest

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.schemas.catalog import ProductUpdate, UnitBatchCreate
from carpet_inventory.services.catalog import CatalogService
from carpet_inventory.services.units import UnitService
from tests import factories


async def test_created_units_feed_product_counters(session):
    product, units = await factories.tracked_product(session, units=3)

    assert len(units) == 3
    assert all(u.status == "available" for u in units)
    assert all(u.serial_number == f"SN-{u.id}" for u in units)
    assert len({u.qr_code for u in units}) == 3
    await session.refresh(product)
    assert product.current_stock == 3
    assert product.individual_products_count == 3
    assert product.status == "in-stock"


async def test_untracked_product_rejects_units(session):
    product = await factories.bulk_product(session)

    with pytest.raises(ValidationError):
        await UnitService(session).create_units(product.id, UnitBatchCreate(quantity=1))


async def test_bulk_product_mirrors_base_quantity(session):
    product = await factories.bulk_product(session, base_quantity=40, min_stock_level=10)
    assert product.current_stock == 40

    catalog = CatalogService(session)
    updated = await catalog.update_product(product.id, ProductUpdate(base_quantity=5))
    await catalog.commit()

    assert updated.current_stock == 5
    assert updated.status == "low-stock"


async def test_reserve_then_release(session):
    product, units = await factories.tracked_product(session, units=2)
    svc = UnitService(session)

    reserved = await svc.reserve([units[0].id], "ORD-X")
    await svc.commit()
    assert reserved[0].status == "reserved"
    assert reserved[0].order_id == "ORD-X"
    assert reserved[0].reserved_at is not None
    await session.refresh(product)
    assert product.current_stock == 1
    assert product.individual_products_count == 2

    assert await svc.release([units[0].id], "ORD-X") == 1
    await svc.commit()
    unit = await svc.get_unit(units[0].id)
    assert unit.status == "available"
    assert unit.order_id is None
    await session.refresh(product)
    assert product.current_stock == 2


async def test_reserve_is_all_or_nothing(session):
    _, units = await factories.tracked_product(session, units=2)
    # rollback expires the loaded units
    taken, free = units[0].id, units[1].id
    svc = UnitService(session)
    await svc.reserve([taken], "ORD-A")
    await svc.commit()

    with pytest.raises(ConflictError) as exc:
        await svc.reserve([free, taken], "ORD-B")
    await svc.rollback()

    assert exc.value.details["units"][0]["id"] == taken
    assert (await svc.get_unit(free)).status == "available"


async def test_overlapping_reservations_have_one_winner(session, session_maker):
    _, units = await factories.tracked_product(session, units=1)
    unit_id = units[0].id

    async def attempt(order_id: str) -> str:
        async with session_maker() as s:
            svc = UnitService(s)
            try:
                await svc.reserve([unit_id], order_id)
            except ConflictError:
                await svc.rollback()
                return "conflict"
            await svc.commit()
            return "reserved"

    results = await asyncio.gather(attempt("ORD-A"), attempt("ORD-B"))

    assert sorted(results) == ["conflict", "reserved"]


async def test_mark_sold_is_idempotent_for_the_same_order(session):
    product, units = await factories.tracked_product(session, units=1)
    svc = UnitService(session)
    await svc.reserve([units[0].id], "ORD-A")
    first = (await svc.mark_sold([units[0].id], "ORD-A"))[0]
    sold_date = first.sold_date
    await svc.commit()

    again = (await svc.mark_sold([units[0].id], "ORD-A"))[0]
    await svc.commit()

    assert again.status == "sold"
    # SQLite hands datetimes back without tzinfo.
    assert again.sold_date.replace(tzinfo=None) == sold_date.replace(tzinfo=None)
    await session.refresh(product)
    assert product.current_stock == 0
    assert product.status == "out-of-stock"


async def test_mark_sold_refuses_units_held_by_another_order(session):
    _, units = await factories.tracked_product(session, units=1)
    svc = UnitService(session)
    await svc.reserve([units[0].id], "ORD-A")
    await svc.commit()

    with pytest.raises(ConflictError):
        await svc.mark_sold([units[0].id], "ORD-B")


async def test_only_available_units_can_be_damaged(session):
    _, units = await factories.tracked_product(session, units=2)
    held, spare = units[0].id, units[1].id
    svc = UnitService(session)
    await svc.reserve([held], "ORD-A")
    await svc.commit()

    with pytest.raises(ConflictError):
        await svc.mark_damaged([held])
    await svc.rollback()

    damaged = await svc.mark_damaged([spare], notes="water stain")
    await svc.commit()
    assert damaged[0].status == "damaged"
    assert damaged[0].notes == "water stain"


async def test_terminal_units_cannot_return_to_available(session):
    _, units = await factories.tracked_product(session, units=1)
    svc = UnitService(session)
    await svc.mark_used([units[0].id])
    await svc.commit()

    with pytest.raises(ConflictError):
        await svc.change_status(units[0].id, "available")


async def test_unknown_unit_is_not_found(session):
    with pytest.raises(NotFoundError):
        await UnitService(session).reserve(["IPD-000000-999"], "ORD-A")


async def test_unit_stats_cover_every_status(session):
    product, units = await factories.tracked_product(session, units=3)
    svc = UnitService(session)
    await svc.mark_damaged([units[0].id])
    await svc.reserve([units[1].id], "ORD-A")
    await svc.commit()

    stats = await svc.unit_stats(product.id)

    assert stats == {"available": 1, "reserved": 1, "sold": 0, "used": 0, "damaged": 1, "total": 3}
