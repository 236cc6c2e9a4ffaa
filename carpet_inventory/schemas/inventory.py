from __future__ import annotations

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

MaterialStatus = Literal["in-stock", "low-stock", "out-of-stock", "overstock", "in-transit"]
MovementReason = Literal["purchase", "production", "waste", "adjustment", "transfer", "sale"]


class RawMaterialCreate(BaseModel):
    """Create raw material payload."""
    name: str = Field(..., min_length=1)
    brand: Optional[str] = Field(None)
    category: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    current_stock: float = Field(0, ge=0)
    min_threshold: float = Field(0, ge=0)
    max_capacity: float = Field(0, ge=0)
    reorder_point: float = Field(0, ge=0)
    supplier_id: Optional[str] = Field(None)
    cost_per_unit: float = Field(0, ge=0)


class RawMaterialUpdate(BaseModel):
    """Partial update. Status is recomputed unless given explicitly."""
    name: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    unit: Optional[str] = Field(None, min_length=1)
    min_threshold: Optional[float] = Field(None, ge=0)
    max_capacity: Optional[float] = Field(None, ge=0)
    reorder_point: Optional[float] = Field(None, ge=0)
    supplier_id: Optional[str] = None
    cost_per_unit: Optional[float] = Field(None, ge=0)
    status: Optional[MaterialStatus] = None


class RawMaterialRead(BaseModel):
    """Raw material read model."""
    id: str
    name: str
    brand: Optional[str] = None
    category: str
    unit: str
    current_stock: float
    reserved_stock: float
    available_stock: float
    min_threshold: float
    max_capacity: float
    reorder_point: float
    status: str
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    cost_per_unit: float
    total_value: float
    last_restocked: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockAdjustment(BaseModel):
    """Signed stock correction: positive adds stock, negative removes it."""
    quantity: float = Field(..., description="Signed quantity")
    reason: MovementReason = Field("adjustment")
    operator: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)


class StockMovementRead(BaseModel):
    """Stock movement read model."""
    id: str
    material_id: str
    material_name: str
    movement_type: str
    quantity: float
    unit: str
    previous_stock: float
    new_stock: float
    reason: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    cost_per_unit: Optional[float] = None
    total_cost: Optional[float] = None
    operator: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RawMaterialStats(BaseModel):
    """Raw material counts per status."""
    total_materials: int
    by_status: Dict[str, int]
