from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from carpet_inventory.db.base import ID_LENGTH, Base, StringPkMixin, TimestampMixin


MATERIAL_STATUSES = ("in-stock", "low-stock", "out-of-stock", "overstock", "in-transit")
MOVEMENT_TYPES = ("in", "out", "adjustment", "transfer")
MOVEMENT_REASONS = ("purchase", "production", "waste", "adjustment", "transfer", "sale")
SETTLEMENT_STATES = ("pending", "completed", "failed")


class RawMaterial(StringPkMixin, TimestampMixin, Base):
    """Bulk raw material (yarn, dye, backing) with a derived status band."""
    __tablename__ = "raw_materials"

    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    brand: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    reserved_stock: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    min_threshold: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    max_capacity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    reorder_point: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="out-of-stock", index=True)
    supplier_id: Mapped[Optional[str]] = mapped_column(
        String(ID_LENGTH), ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True
    )
    supplier_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_value: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False, default=Decimal("0"))
    last_restocked: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def available_stock(self) -> Decimal:
        return max(Decimal("0"), self.current_stock - self.reserved_stock)


class StockMovement(StringPkMixin, TimestampMixin, Base):
    """Append-only record of a raw material quantity change."""
    __tablename__ = "stock_movements"

    material_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("raw_materials.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    material_name: Mapped[str] = mapped_column(Text, nullable=False)
    movement_type: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    previous_stock: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    new_stock: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    reason: Mapped[str] = mapped_column(String(16), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(ID_LENGTH), nullable=True, index=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)
    operator: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class StockSettlement(TimestampMixin, Base):
    """
    Outbox row for the bulk stock deduction owed by a dispatched order.

    Keyed by order id so dispatch and delivery share one settlement.
    """
    __tablename__ = "stock_settlements"

    order_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True
    )
    trigger_status: Mapped[str] = mapped_column(String(16), nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
