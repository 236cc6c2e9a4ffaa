from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpet_inventory.db.base import ID_LENGTH, Base, StringPkMixin, TimestampMixin


BATCH_STATUSES = ("planned", "in_progress", "completed", "cancelled")
BATCH_PRIORITIES = ("low", "medium", "high", "urgent")
CONSUMPTION_TYPES = ("raw_material", "product")
CONSUMPTION_STATES = ("planned", "consumed", "cancelled")


class ProductionBatch(StringPkMixin, TimestampMixin, Base):
    """A production run of one product; its inventory effects land on completion."""
    __tablename__ = "production_batches"

    batch_number: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, unique=True)
    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    planned_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="planned", index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    operator: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supervisor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    inspector: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    consumptions: Mapped[List["MaterialConsumption"]] = relationship(
        "MaterialConsumption",
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="[MaterialConsumption.created_at, MaterialConsumption.id]",
    )


class MaterialConsumption(StringPkMixin, TimestampMixin, Base):
    """
    Raw material or finished units a batch uses up.

    Product consumptions of tracked SKUs name the exact units; everything
    else is a quantity.
    """
    __tablename__ = "material_consumptions"

    batch_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("production_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_type: Mapped[str] = mapped_column(String(16), nullable=False)
    material_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, index=True)
    material_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    individual_product_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="planned")
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    batch: Mapped[ProductionBatch] = relationship("ProductionBatch", back_populates="consumptions")
