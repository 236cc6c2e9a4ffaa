from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from carpet_inventory.db.base import ID_LENGTH, Base, StringPkMixin, TimestampMixin


PRODUCT_STATUSES = ("in-stock", "low-stock", "out-of-stock")
UNIT_STATUSES = ("available", "reserved", "sold", "used", "damaged")
QUALITY_GRADES = ("A+", "A", "B", "C")


class Product(StringPkMixin, TimestampMixin, Base):
    """
    Carpet SKU / manufacturing template.

    current_stock and individual_products_count are a cached view maintained by
    the stock ledger only; base_quantity is the bulk quantity for SKUs without
    individual tracking.
    """
    __tablename__ = "products"

    qr_code: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    length: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    width: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    length_unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    width_unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    weight_unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pattern: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="pieces")

    individual_stock_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    base_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    individual_products_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_stock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="out-of-stock")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class IndividualProduct(StringPkMixin, TimestampMixin, Base):
    """One physical, QR-coded carpet belonging to a Product."""
    __tablename__ = "individual_products"

    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    qr_code: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, unique=True)
    serial_number: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="available", index=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(ID_LENGTH), nullable=True, index=True)
    reserved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    production_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    batch_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quality_grade: Mapped[str] = mapped_column(String(4), nullable=False, default="A")
    inspector: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
