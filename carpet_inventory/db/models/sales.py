from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpet_inventory.db.base import ID_LENGTH, Base, StringPkMixin, TimestampMixin


ORDER_STATUSES = (
    "pending",
    "accepted",
    "in_production",
    "ready",
    "dispatched",
    "delivered",
    "cancelled",
)
WORKFLOW_STEPS = ("accept", "dispatch", "delivered")
ITEM_TYPES = ("product", "raw_material")


class Customer(StringPkMixin, TimestampMixin, Base):
    """Customer master."""
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gst_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    credit_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    last_order_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Order(StringPkMixin, TimestampMixin, Base):
    """
    Customer order header.

    gst_amount, total_amount and outstanding_amount are derived from subtotal,
    gst_rate, gst_included, discount_amount and paid_amount on every save.
    """
    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, unique=True)
    customer_id: Mapped[Optional[str]] = mapped_column(
        String(ID_LENGTH), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    workflow_step: Mapped[str] = mapped_column(String(16), nullable=False, default="accept")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    gst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("18"))
    gst_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    outstanding_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="[OrderItem.created_at, OrderItem.id]",
    )

    @property
    def payment_status(self) -> str:
        if self.total_amount > 0 and self.paid_amount >= self.total_amount:
            return "paid"
        if self.paid_amount > 0:
            return "partial"
        return "unpaid"


class OrderItem(StringPkMixin, TimestampMixin, Base):
    """
    One line of an Order, referencing either a Product or a RawMaterial.

    selected_individual_products holds the units allocated to this line as
    dicts of individual_product_id, qr_code, serial_number, status, allocated_at.
    """
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_type: Mapped[str] = mapped_column(String(16), nullable=False, default="product")
    product_id: Mapped[Optional[str]] = mapped_column(
        String(ID_LENGTH), ForeignKey("products.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    raw_material_id: Mapped[Optional[str]] = mapped_column(String(ID_LENGTH), nullable=True, index=True)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="pieces")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quality_grade: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    specifications: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    selected_individual_products: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    order: Mapped[Order] = relationship("Order", back_populates="items")

    @property
    def selected_unit_ids(self) -> List[str]:
        return [s["individual_product_id"] for s in self.selected_individual_products or []]

    @property
    def is_fully_selected(self) -> bool:
        return len(self.selected_individual_products or []) >= self.quantity
