"""
Database seeding utilities for sample reference data.

Seeds:
- Suppliers (yarn and dye vendors)
- Raw materials linked to those suppliers
- Carpet products, one tracked with a batch of units and one bulk SKU
- A walk-in customer

Every step looks its rows up by name first, so running the seed twice leaves
the database unchanged.

Usage:
  python -m carpet_inventory.db.run_migrations upgrade head
  python -m carpet_inventory.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.logging import configure_logging
from carpet_inventory.db.models.catalog import Product
from carpet_inventory.db.models.inventory import RawMaterial
from carpet_inventory.db.models.procurement import Supplier
from carpet_inventory.db.models.sales import Customer
from carpet_inventory.db.session import get_async_session
from carpet_inventory.schemas.catalog import ProductCreate, UnitBatchCreate
from carpet_inventory.schemas.inventory import RawMaterialCreate
from carpet_inventory.schemas.procurement import SupplierCreate
from carpet_inventory.schemas.sales import CustomerCreate
from carpet_inventory.services.catalog import CatalogService
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.units import UnitService

logger = logging.getLogger(__name__)

SUPPLIERS: List[Tuple[str, str, str]] = [
    ("Panipat Yarn Mills", "R. Sharma", "orders@panipatyarn.in"),
    ("Bhadohi Dye House", "A. Khan", "sales@bhadohidye.in"),
]

# name, category, unit, stock, min threshold, max capacity, cost, supplier
MATERIALS: List[Tuple[str, str, str, float, float, float, float, str]] = [
    ("Wool Yarn 4-ply", "yarn", "kg", 500, 100, 2000, 420, "Panipat Yarn Mills"),
    ("Cotton Warp", "yarn", "kg", 300, 80, 1500, 260, "Panipat Yarn Mills"),
    ("Indigo Dye", "dye", "liters", 40, 20, 200, 950, "Bhadohi Dye House"),
    ("Latex Backing", "backing", "liters", 120, 50, 600, 180, "Bhadohi Dye House"),
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with sample suppliers, materials, products and a customer.

    Runs in a single transaction through the regular services, so ids come
    from the sequence allocator and product counters from the stock ledger.
    """
    async for session in get_async_session():
        catalog = CatalogService(session)
        suppliers = await _seed_suppliers(session, catalog)
        await _seed_materials(session, suppliers)
        await _seed_products(session, catalog)
        await _seed_customer(session, catalog)
        await catalog.commit()
    logger.info("Seed complete")


async def _exists(session: AsyncSession, model, name: str):
    return (await session.execute(select(model).where(model.name == name))).scalars().first()


async def _seed_suppliers(session: AsyncSession, catalog: CatalogService) -> Dict[str, str]:
    ids: Dict[str, str] = {}
    for name, contact, email in SUPPLIERS:
        existing = await _exists(session, Supplier, name)
        if existing is None:
            existing = await catalog.create_supplier(
                SupplierCreate(name=name, contact_person=contact, email=email)
            )
        ids[name] = existing.id
    return ids


async def _seed_materials(session: AsyncSession, suppliers: Dict[str, str]) -> None:
    svc = RawMaterialService(session)
    for name, category, unit, stock, min_threshold, max_capacity, cost, supplier in MATERIALS:
        if await _exists(session, RawMaterial, name) is not None:
            continue
        await svc.create(
            RawMaterialCreate(
                name=name,
                category=category,
                unit=unit,
                current_stock=stock,
                min_threshold=min_threshold,
                max_capacity=max_capacity,
                reorder_point=min_threshold,
                supplier_id=suppliers.get(supplier),
                cost_per_unit=cost,
            )
        )


async def _seed_products(session: AsyncSession, catalog: CatalogService) -> None:
    if await _exists(session, Product, "Kashmiri Medallion 6x9") is None:
        tracked = await catalog.create_product(
            ProductCreate(
                name="Kashmiri Medallion 6x9",
                category="hand-knotted",
                length=9,
                width=6,
                length_unit="ft",
                width_unit="ft",
                color="crimson",
                pattern="medallion",
                min_stock_level=2,
            )
        )
        await UnitService(session).create_units(
            tracked.id, UnitBatchCreate(quantity=5, batch_number="SEED-001", quality_grade="A+")
        )

    if await _exists(session, Product, "Jute Runner 2x8") is None:
        await catalog.create_product(
            ProductCreate(
                name="Jute Runner 2x8",
                category="flat-weave",
                length=8,
                width=2,
                length_unit="ft",
                width_unit="ft",
                individual_stock_tracking=False,
                base_quantity=40,
                min_stock_level=10,
            )
        )


async def _seed_customer(session: AsyncSession, catalog: CatalogService) -> None:
    if await _exists(session, Customer, "Walk-in Customer") is None:
        await catalog.create_customer(CustomerCreate(name="Walk-in Customer"))


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_all())
