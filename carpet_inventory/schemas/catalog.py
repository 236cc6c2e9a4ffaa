from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

UnitStatus = Literal["available", "reserved", "sold", "used", "damaged"]
QualityGrade = Literal["A+", "A", "B", "C"]


class ProductCreate(BaseModel):
    """Create product payload."""
    name: str = Field(..., min_length=1, description="Product name")
    category: str = Field(..., min_length=1, description="Category")
    subcategory: Optional[str] = Field(None)
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    length_unit: Optional[str] = Field(None)
    width_unit: Optional[str] = Field(None)
    weight: Optional[float] = Field(None, ge=0)
    weight_unit: Optional[str] = Field(None)
    color: Optional[str] = Field(None)
    pattern: Optional[str] = Field(None)
    unit: str = Field("pieces", description="Unit of measure")
    individual_stock_tracking: bool = Field(True, description="Track every physical unit")
    base_quantity: int = Field(0, ge=0, description="Bulk quantity for untracked products")
    min_stock_level: int = Field(10, ge=0)
    max_stock_level: int = Field(1000, ge=0)
    reorder_point: int = Field(10, ge=0)
    notes: Optional[str] = Field(None)


class ProductUpdate(BaseModel):
    """Partial product update. Stock counters are derived and cannot be set."""
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    subcategory: Optional[str] = None
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    weight_unit: Optional[str] = None
    color: Optional[str] = None
    pattern: Optional[str] = None
    unit: Optional[str] = None
    base_quantity: Optional[int] = Field(None, ge=0)
    min_stock_level: Optional[int] = Field(None, ge=0)
    max_stock_level: Optional[int] = Field(None, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class TrackingToggle(BaseModel):
    """Enable or disable individual unit tracking."""
    enabled: bool = Field(..., description="New tracking flag")


class ProductRead(BaseModel):
    """Product read model."""
    id: str = Field(..., description="Product id")
    qr_code: str = Field(..., description="Product QR code")
    name: str
    category: str
    subcategory: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    color: Optional[str] = None
    pattern: Optional[str] = None
    unit: str
    individual_stock_tracking: bool
    base_quantity: int
    current_stock: int = Field(..., description="Available units (tracked) or bulk quantity")
    individual_products_count: int = Field(..., description="Units of this product in any status")
    min_stock_level: int
    max_stock_level: int
    reorder_point: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitBatchCreate(BaseModel):
    """Units produced for a tracked product (production completion)."""
    quantity: int = Field(..., ge=1, description="Number of units to create")
    batch_number: Optional[str] = Field(None)
    quality_grade: QualityGrade = Field("A")
    inspector: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    production_date: Optional[date] = Field(None)
    notes: Optional[str] = Field(None)


class UnitUpdate(BaseModel):
    """Descriptive unit fields; status changes go through the status endpoint."""
    batch_number: Optional[str] = None
    quality_grade: Optional[QualityGrade] = None
    inspector: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class UnitStatusChange(BaseModel):
    """Request one unit status transition."""
    status: UnitStatus = Field(..., description="Target status")
    order_id: Optional[str] = Field(None, description="Order holding the unit (reserve / sell)")


class UnitBulkAction(BaseModel):
    """Apply a transition to several units."""
    individual_product_ids: List[str] = Field(..., min_length=1)
    order_id: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)


class UnitRead(BaseModel):
    """Individual unit read model."""
    id: str
    product_id: str
    product_name: str
    qr_code: str
    serial_number: str
    status: str
    order_id: Optional[str] = None
    reserved_at: Optional[datetime] = None
    sold_date: Optional[datetime] = None
    production_date: Optional[date] = None
    batch_number: Optional[str] = None
    quality_grade: str
    inspector: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitStats(BaseModel):
    """Unit counts per status for one product."""
    available: int = 0
    reserved: int = 0
    sold: int = 0
    used: int = 0
    damaged: int = 0
    total: int = 0
