from __future__ import annotations

from decimal import Decimal

import pytest

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.schemas.production import (
    BatchCompletion,
    MaterialConsumptionCreate,
    ProductionBatchCreate,
)
from carpet_inventory.services.production import ProductionService
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.units import UnitService
from tests import factories

API = "/api/v1"


def yarn(material, quantity):
    return MaterialConsumptionCreate(material_type="raw_material", material_id=material.id, quantity=quantity)


def units_of(product, unit_ids):
    return MaterialConsumptionCreate(material_type="product", material_id=product.id, individual_product_ids=unit_ids)


async def plan(session, product, *consumptions, **fields):
    svc = ProductionService(session)
    batch = await svc.create_batch(
        ProductionBatchCreate(product_id=product.id, planned_quantity=3, consumptions=list(consumptions), **fields)
    )
    await svc.commit()
    return svc, batch


async def test_planning_moves_no_stock(session):
    product, _ = await factories.tracked_product(session, units=0)
    backing, rolls = await factories.tracked_product(session, units=2, name="Cotton Backing Roll")
    material = await factories.raw_material(session, current_stock=500)

    _, batch = await plan(session, product, yarn(material, 120), units_of(backing, [rolls[0].id]))

    assert batch.id.startswith("BATCH-")
    assert batch.batch_number == batch.id
    assert batch.status == "planned"
    assert [c.status for c in batch.consumptions] == ["planned", "planned"]
    assert batch.consumptions[1].quantity == Decimal("1")
    await session.refresh(material)
    assert material.current_stock == Decimal("500")
    assert (await UnitService(session).get_unit(rolls[0].id)).status == "available"


async def test_complete_batch_books_every_effect(session):
    product, _ = await factories.tracked_product(session, units=0)
    backing, rolls = await factories.tracked_product(session, units=2, name="Cotton Backing Roll")
    material = await factories.raw_material(session, current_stock=500, min_threshold=100)
    svc, batch = await plan(
        session, product, yarn(material, 450), units_of(backing, [rolls[0].id]), batch_number="LOOM-7"
    )

    done = await svc.complete_batch(
        batch.id, BatchCompletion(actual_quantity=3, inspector="QC Meera", location="Warehouse A", operator="loom-7")
    )
    await svc.commit()

    assert done.status == "completed"
    assert done.actual_quantity == 3
    assert done.completion_date is not None
    assert [c.status for c in done.consumptions] == ["consumed", "consumed"]

    made = await UnitService(session).list_units(product_id=product.id)
    assert len(made) == 3
    assert {(u.batch_number, u.inspector, u.location, u.status) for u in made} == {
        ("LOOM-7", "QC Meera", "Warehouse A", "available")
    }
    await session.refresh(product)
    assert product.current_stock == 3

    assert (await UnitService(session).get_unit(rolls[0].id)).status == "used"
    await session.refresh(backing)
    assert backing.current_stock == 1

    await session.refresh(material)
    assert material.current_stock == Decimal("50")
    assert material.status == "low-stock"
    latest = (await RawMaterialService(session).stock_history(material.id))[0]
    assert (latest.movement_type, latest.reason, latest.quantity) == ("out", "production", Decimal("450"))
    assert (latest.reference_id, latest.reference_type, latest.operator) == (batch.id, "production_batch", "loom-7")


async def test_material_shortage_leaves_batch_open(session):
    product, _ = await factories.tracked_product(session, units=0)
    material = await factories.raw_material(session, current_stock=50)
    svc, batch = await plan(session, product, yarn(material, 80))
    # rollback expires every loaded instance
    batch_id, product_id = batch.id, product.id

    with pytest.raises(ValidationError):
        await svc.complete_batch(batch_id, BatchCompletion(actual_quantity=2))
    await svc.rollback()

    reopened = await svc.get_batch(batch_id)
    assert reopened.status == "planned"
    assert [c.status for c in reopened.consumptions] == ["planned"]
    assert await UnitService(session).list_units(product_id=product_id) == []
    await session.refresh(material)
    assert material.current_stock == Decimal("50")


async def test_consumed_unit_taken_by_an_order_blocks_completion(session):
    product, _ = await factories.tracked_product(session, units=0)
    backing, rolls = await factories.tracked_product(session, units=1, name="Cotton Backing Roll")
    material = await factories.raw_material(session, current_stock=500)
    roll_id = rolls[0].id
    svc, batch = await plan(session, product, yarn(material, 10), units_of(backing, [roll_id]))
    batch_id = batch.id
    await factories.order(session, factories.product_line(backing, 1, unit_ids=[roll_id]))

    with pytest.raises(ConflictError):
        await svc.complete_batch(batch_id, BatchCompletion(actual_quantity=1))
    await svc.rollback()

    assert (await svc.get_batch(batch_id)).status == "planned"
    await session.refresh(material)
    assert material.current_stock == Decimal("500")


async def test_unit_cannot_be_planned_for_two_open_batches(session):
    product, _ = await factories.tracked_product(session, units=0)
    backing, rolls = await factories.tracked_product(session, units=1, name="Cotton Backing Roll")
    roll_id = rolls[0].id
    svc, first = await plan(session, product, units_of(backing, [roll_id]))
    first_id = first.id

    with pytest.raises(ConflictError):
        await svc.create_batch(
            ProductionBatchCreate(product_id=product.id, planned_quantity=1, consumptions=[units_of(backing, [roll_id])])
        )
    await svc.rollback()

    await svc.cancel_batch(first_id, "loom down")
    await svc.commit()
    await session.refresh(product)
    await session.refresh(backing)
    _, second = await plan(session, product, units_of(backing, [roll_id]))
    assert second.consumptions[0].individual_product_ids == [roll_id]


async def test_consumption_rules_per_material(session):
    product, _ = await factories.tracked_product(session, units=0)
    backing, rolls = await factories.tracked_product(session, units=1, name="Cotton Backing Roll")
    svc, batch = await plan(session, product)

    with pytest.raises(ValidationError):
        await svc.add_consumption(
            batch.id, MaterialConsumptionCreate(material_type="product", material_id=backing.id, quantity=1)
        )
    with pytest.raises(ValidationError):
        await svc.add_consumption(batch.id, units_of(product, [rolls[0].id]))
    with pytest.raises(NotFoundError):
        await svc.add_consumption(
            batch.id, MaterialConsumptionCreate(material_type="raw_material", material_id="MAT-000000-999", quantity=1)
        )


async def test_bulk_products_move_base_quantity(session):
    runner = await factories.bulk_product(session, base_quantity=40)
    fringe = await factories.bulk_product(session, base_quantity=12)
    svc, batch = await plan(
        session, runner, MaterialConsumptionCreate(material_type="product", material_id=fringe.id, quantity=5)
    )

    await svc.complete_batch(batch.id, BatchCompletion(actual_quantity=10))
    await svc.commit()

    await session.refresh(runner)
    await session.refresh(fringe)
    assert (runner.base_quantity, runner.current_stock) == (50, 50)
    assert (fringe.base_quantity, fringe.current_stock) == (7, 7)


async def test_batch_transitions(session):
    product, _ = await factories.tracked_product(session, units=0)
    material = await factories.raw_material(session)
    svc, batch = await plan(session, product, yarn(material, 5))

    started = await svc.start_batch(batch.id)
    assert started.status == "in_progress"
    assert started.start_date is not None
    assert (await svc.start_batch(batch.id)).status == "in_progress"

    await svc.add_consumption(batch.id, yarn(material, 7))
    trimmed = await svc.remove_consumption(batch.id, batch.consumptions[0].id)
    await svc.commit()
    assert [c.quantity for c in trimmed.consumptions] == [Decimal("7")]

    cancelled = await svc.cancel_batch(batch.id, "dye lot rejected")
    await svc.commit()
    assert cancelled.status == "cancelled"
    assert cancelled.consumptions[0].status == "cancelled"
    assert await svc.cancel_batch(batch.id) is cancelled

    with pytest.raises(ConflictError):
        await svc.complete_batch(batch.id, BatchCompletion(actual_quantity=1))
    with pytest.raises(ConflictError):
        await svc.start_batch(batch.id)


async def test_completed_batch_is_frozen(session):
    product, _ = await factories.tracked_product(session, units=0)
    svc, batch = await plan(session, product)
    await svc.complete_batch(batch.id, BatchCompletion(actual_quantity=0))
    await svc.commit()

    with pytest.raises(ConflictError):
        await svc.cancel_batch(batch.id)
    with pytest.raises(ConflictError):
        await svc.delete_batch(batch.id)
    await session.refresh(product)
    assert product.current_stock == 0


async def test_duplicate_batch_number_is_rejected(session):
    product, _ = await factories.tracked_product(session, units=0)
    svc, _ = await plan(session, product, batch_number="LOOM-1")

    with pytest.raises(ConflictError):
        await svc.create_batch(ProductionBatchCreate(product_id=product.id, planned_quantity=1, batch_number="LOOM-1"))


async def test_production_batch_through_api(client):
    resp = await client.post(f"{API}/products", json={"name": "Gabbeh 4x6", "category": "hand-knotted"})
    product = resp.json()["data"]
    resp = await client.post(
        f"{API}/raw-materials",
        json={"name": "Wool Yarn", "category": "yarn", "unit": "kg", "current_stock": 100, "cost_per_unit": 300},
    )
    material = resp.json()["data"]

    resp = await client.post(
        f"{API}/production/batches",
        json={
            "product_id": product["id"],
            "planned_quantity": 2,
            "consumptions": [{"material_type": "raw_material", "material_id": material["id"], "quantity": 30}],
        },
    )
    assert resp.status_code == 201
    batch = resp.json()["data"]

    resp = await client.post(f"{API}/production/batches/{batch['id']}/start")
    assert resp.json()["data"]["status"] == "in_progress"

    resp = await client.post(
        f"{API}/production/batches/{batch['id']}/complete", json={"actual_quantity": 2, "inspector": "QC Ravi"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "completed"

    resp = await client.get(f"{API}/products/{product['id']}")
    assert resp.json()["data"]["current_stock"] == 2
    resp = await client.get(f"{API}/raw-materials/{material['id']}")
    assert resp.json()["data"]["current_stock"] == 70

    resp = await client.post(f"{API}/production/batches/{batch['id']}/cancel", json={})
    assert resp.status_code == 409
    resp = await client.get(f"{API}/production/batches", params={"status": "completed"})
    assert [b["id"] for b in resp.json()["data"]] == [batch["id"]]
