from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from carpet_inventory.db.models.catalog import Product
from carpet_inventory.db.models.procurement import Supplier
from carpet_inventory.db.models.sales import Customer
from carpet_inventory.repositories.catalog import IndividualProductRepository, ProductRepository
from carpet_inventory.repositories.procurement import SupplierRepository
from carpet_inventory.repositories.sales import CustomerRepository
from carpet_inventory.schemas.catalog import ProductCreate, ProductUpdate
from carpet_inventory.schemas.procurement import SupplierCreate
from carpet_inventory.schemas.sales import CustomerCreate
from carpet_inventory.services.base import BaseService
from carpet_inventory.services.pricing import money, to_decimal
from carpet_inventory.services.sequences import SequenceAllocator
from carpet_inventory.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

_MEASURE_FIELDS = ("length", "width", "weight")


class CatalogService(BaseService):
    """
    Master data: products, customers and suppliers.

    Product stock counters are never written here directly; any change that
    affects them ends with a stock ledger recompute.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.products = ProductRepository(session)
        self.units = IndividualProductRepository(session)
        self.customers = CustomerRepository(session)
        self.suppliers = SupplierRepository(session)
        self.allocator = SequenceAllocator(session)
        self.ledger = StockLedger(session)

    # ----- products -----

    # PUBLIC_INTERFACE
    async def create_product(self, payload: ProductCreate) -> Product:
        """
        Create a product with its own id and QR code.

        Parameters:
            payload: ProductCreate request
        Returns:
            The product with stock counters already derived.
        """
        data = payload.model_dump()
        for field in _MEASURE_FIELDS:
            if data[field] is not None:
                data[field] = to_decimal(data[field])
        product = Product(
            id=await self.allocator.product_id(),
            qr_code=await self.allocator.qr_code(),
            current_stock=0,
            individual_products_count=0,
            status="out-of-stock",
            **data,
        )
        await self.products.add(product)
        await self.ledger.recompute_product_stock(product.id)
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    # PUBLIC_INTERFACE
    async def get_product(self, product_id: str) -> Product:
        product = await self.products.get_product(product_id)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)
        return product

    # PUBLIC_INTERFACE
    async def list_products(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Product]:
        return await self.products.list_products(
            search=search, category=category, status=status, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def update_product(self, product_id: str, payload: ProductUpdate) -> Product:
        """Partial update; a base_quantity or threshold change refreshes stock."""
        product = await self.products.get_product(product_id, for_update=True)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)

        changes = payload.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field in _MEASURE_FIELDS and value is not None:
                value = to_decimal(value)
            setattr(product, field, value)

        if {"base_quantity", "min_stock_level"} & changes.keys():
            product = await self.ledger.recompute_product_stock(product.id)
        else:
            await self.session.flush()
        return product

    # PUBLIC_INTERFACE
    async def set_tracking(self, product_id: str, enabled: bool) -> Product:
        """
        Switch individual unit tracking.

        Tracking cannot be disabled while the product still has units, because
        current_stock would silently flip from the unit count to base_quantity.
        """
        product = await self.products.get_product(product_id, for_update=True)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)
        if product.individual_stock_tracking == enabled:
            return product
        if not enabled:
            counts = await self.units.count_by_status(product_id)
            if sum(counts.values()):
                raise ConflictError(
                    "Product has individual units; tracking cannot be disabled",
                    details={"product_id": product_id, "units": sum(counts.values())},
                )
        product.individual_stock_tracking = enabled
        logger.info("Product %s tracking set to %s", product_id, enabled)
        return await self.ledger.recompute_product_stock(product_id)

    # PUBLIC_INTERFACE
    async def delete_product(self, product_id: str) -> None:
        """Delete a product that has no units and appears on no order."""
        product = await self.get_product(product_id)
        counts = await self.units.count_by_status(product_id)
        if sum(counts.values()):
            raise ConflictError("Product has individual units", details={"product_id": product_id})
        if await self.products.count_order_items(product_id):
            raise ConflictError("Product is referenced by orders", details={"product_id": product_id})
        await self.products.delete(product)
        await self.session.flush()
        logger.info("Deleted product %s", product_id)

    # PUBLIC_INTERFACE
    async def sync_stock(self, product_id: Optional[str] = None) -> int:
        """Repair cached counters of one product, or of all when no id is given."""
        if product_id:
            await self.ledger.recompute_product_stock(product_id)
            return 1
        return await self.ledger.recompute_all_products()

    # ----- customers -----

    # PUBLIC_INTERFACE
    async def create_customer(self, payload: CustomerCreate) -> Customer:
        if payload.credit_limit < 0:
            raise ValidationError("Credit limit must not be negative", details={"credit_limit": payload.credit_limit})
        customer = Customer(
            id=await self.allocator.customer_id(),
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            gst_number=payload.gst_number,
            credit_limit=money(payload.credit_limit),
            total_orders=0,
            total_value=money(0),
        )
        await self.customers.add(customer)
        await self.session.flush()
        logger.info("Created customer %s", customer.id)
        return customer

    # PUBLIC_INTERFACE
    async def get_customer(self, customer_id: str) -> Customer:
        customer = await self.customers.get_customer(customer_id)
        if customer is None:
            raise NotFoundError.for_entity("Customer", customer_id)
        return customer

    # PUBLIC_INTERFACE
    async def list_customers(self, *, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Customer]:
        return await self.customers.list_customers(search=search, limit=limit, offset=offset)

    # ----- suppliers -----

    # PUBLIC_INTERFACE
    async def create_supplier(self, payload: SupplierCreate) -> Supplier:
        """Create a supplier; names are unique ignoring case."""
        if await self.suppliers.get_by_name(payload.name) is not None:
            raise ConflictError("Supplier name already exists", details={"name": payload.name})
        supplier = Supplier(
            id=await self.allocator.supplier_id(),
            name=payload.name,
            contact_person=payload.contact_person,
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            gst_number=payload.gst_number,
            performance_rating=to_decimal(payload.performance_rating),
            total_orders=0,
            total_value=money(0),
            status="active",
        )
        await self.suppliers.add(supplier)
        await self.session.flush()
        logger.info("Created supplier %s (%s)", supplier.id, supplier.name)
        return supplier

    # PUBLIC_INTERFACE
    async def get_supplier(self, supplier_id: str) -> Supplier:
        supplier = await self.suppliers.get_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError.for_entity("Supplier", supplier_id)
        return supplier

    # PUBLIC_INTERFACE
    async def list_suppliers(self, *, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Supplier]:
        return await self.suppliers.list_suppliers(search=search, limit=limit, offset=offset)
