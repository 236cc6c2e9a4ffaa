"""Builders for test data, all going through the regular services."""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.models.catalog import IndividualProduct, Product
from carpet_inventory.db.models.inventory import RawMaterial
from carpet_inventory.db.models.procurement import Supplier
from carpet_inventory.db.models.sales import Customer, Order
from carpet_inventory.schemas.catalog import ProductCreate, UnitBatchCreate
from carpet_inventory.schemas.inventory import RawMaterialCreate
from carpet_inventory.schemas.procurement import SupplierCreate
from carpet_inventory.schemas.sales import CustomerCreate, OrderCreate, OrderItemCreate
from carpet_inventory.services.catalog import CatalogService
from carpet_inventory.services.orders import OrderService
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.units import UnitService


async def tracked_product(
    session: AsyncSession, units: int = 3, min_stock_level: int = 1, name: str = "Persian Tabriz 5x8"
) -> Tuple[Product, List[IndividualProduct]]:
    catalog = CatalogService(session)
    product = await catalog.create_product(
        ProductCreate(name=name, category="hand-knotted", min_stock_level=min_stock_level)
    )
    created: List[IndividualProduct] = []
    if units:
        created = await UnitService(session).create_units(product.id, UnitBatchCreate(quantity=units))
    await catalog.commit()
    return product, created


async def bulk_product(session: AsyncSession, base_quantity: int = 40, min_stock_level: int = 10) -> Product:
    catalog = CatalogService(session)
    product = await catalog.create_product(
        ProductCreate(
            name="Jute Runner 2x8",
            category="flat-weave",
            individual_stock_tracking=False,
            base_quantity=base_quantity,
            min_stock_level=min_stock_level,
        )
    )
    await catalog.commit()
    return product


async def supplier(session: AsyncSession, name: str = "Panipat Yarn Mills") -> Supplier:
    catalog = CatalogService(session)
    row = await catalog.create_supplier(SupplierCreate(name=name))
    await catalog.commit()
    return row


async def customer(session: AsyncSession, name: str = "Asha Interiors") -> Customer:
    catalog = CatalogService(session)
    row = await catalog.create_customer(CustomerCreate(name=name, email="buyer@ashainteriors.in"))
    await catalog.commit()
    return row


async def raw_material(
    session: AsyncSession,
    current_stock: float = 500,
    min_threshold: float = 100,
    max_capacity: float = 2000,
    supplier_id: Optional[str] = None,
    name: str = "Wool Yarn 4-ply",
) -> RawMaterial:
    svc = RawMaterialService(session)
    material = await svc.create(
        RawMaterialCreate(
            name=name,
            category="yarn",
            unit="kg",
            current_stock=current_stock,
            min_threshold=min_threshold,
            max_capacity=max_capacity,
            reorder_point=min_threshold,
            supplier_id=supplier_id,
            cost_per_unit=400,
        )
    )
    await svc.commit()
    return material


async def order(session: AsyncSession, *items: OrderItemCreate, **fields) -> Order:
    fields.setdefault("customer_name", "Walk-in")
    svc = OrderService(session)
    row = await svc.create_order(OrderCreate(items=list(items), **fields))
    await svc.commit()
    return row


def product_line(product: Product, quantity: int, unit_price: float = 500, unit_ids=()) -> OrderItemCreate:
    return OrderItemCreate(
        product_type="product",
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        individual_product_ids=list(unit_ids),
    )


def material_line(material: RawMaterial, quantity: int, unit_price: float = 450) -> OrderItemCreate:
    return OrderItemCreate(
        product_type="raw_material", raw_material_id=material.id, quantity=quantity, unit_price=unit_price
    )
