from __future__ import annotations

import pytest

from carpet_inventory.core.errors import ConflictError, NotFoundError
from carpet_inventory.services.catalog import CatalogService
from carpet_inventory.services.stock_ledger import StockLedger
from carpet_inventory.services.units import UnitService
from tests import factories


async def test_recompute_repairs_drifted_counters(session):
    product, _ = await factories.tracked_product(session, units=4)
    product.current_stock = 99
    product.individual_products_count = 0
    await session.commit()

    catalog = CatalogService(session)
    assert await catalog.sync_stock(product.id) == 1
    await catalog.commit()

    await session.refresh(product)
    assert product.current_stock == 4
    assert product.individual_products_count == 4


async def test_recompute_is_idempotent(session):
    product, units = await factories.tracked_product(session, units=3)
    await UnitService(session).mark_damaged([units[0].id])
    ledger = StockLedger(session)

    first = await ledger.recompute_product_stock(product.id)
    snapshot = (first.current_stock, first.individual_products_count, first.status)
    second = await ledger.recompute_product_stock(product.id)
    await ledger.commit()

    assert snapshot == (2, 3, "in-stock")
    assert (second.current_stock, second.individual_products_count, second.status) == snapshot


async def test_sync_all_products(session):
    await factories.tracked_product(session, units=1)
    await factories.bulk_product(session)

    catalog = CatalogService(session)
    assert await catalog.sync_stock() == 2
    await catalog.commit()


async def test_recompute_unknown_product(session):
    with pytest.raises(NotFoundError):
        await StockLedger(session).recompute_product_stock("PRO-000000-999")


async def test_tracking_cannot_be_disabled_while_units_exist(session):
    product, _ = await factories.tracked_product(session, units=1)

    with pytest.raises(ConflictError):
        await CatalogService(session).set_tracking(product.id, False)


async def test_disabling_tracking_switches_to_base_quantity(session):
    product, _ = await factories.tracked_product(session, units=0)
    catalog = CatalogService(session)

    updated = await catalog.set_tracking(product.id, False)
    await catalog.commit()

    assert updated.individual_stock_tracking is False
    assert updated.current_stock == updated.base_quantity == 0
    assert updated.status == "out-of-stock"


async def test_product_with_units_cannot_be_deleted(session):
    product, _ = await factories.tracked_product(session, units=1)

    with pytest.raises(ConflictError):
        await CatalogService(session).delete_product(product.id)
