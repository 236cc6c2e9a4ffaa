from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from carpet_inventory.schemas.catalog import QualityGrade

BatchStatus = Literal["planned", "in_progress", "completed", "cancelled"]
BatchPriority = Literal["low", "medium", "high", "urgent"]
ConsumptionType = Literal["raw_material", "product"]


class MaterialConsumptionCreate(BaseModel):
    """
    Material a batch will use up.

    Tracked products are consumed by unit id (quantity follows the list);
    raw materials and untracked products by quantity.
    """
    material_type: ConsumptionType = Field(..., description="raw_material or product")
    material_id: str = Field(..., description="Raw material or product id")
    quantity: Optional[float] = Field(None, gt=0, description="Quantity for raw materials and untracked products")
    individual_product_ids: List[str] = Field(default_factory=list, description="Units of a tracked product")
    notes: Optional[str] = Field(None)

    @model_validator(mode="after")
    def _quantity_or_units(self) -> "MaterialConsumptionCreate":
        if self.material_type == "raw_material" and self.individual_product_ids:
            raise ValueError("individual_product_ids only apply to product consumptions")
        if not self.individual_product_ids and self.quantity is None:
            raise ValueError("quantity or individual_product_ids is required")
        return self


class MaterialConsumptionRead(BaseModel):
    """Material consumption read model."""
    id: str
    batch_id: str
    material_type: str
    material_id: str
    material_name: str
    quantity: float
    unit: str
    individual_product_ids: List[str] = Field(default_factory=list)
    status: str
    consumed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProductionBatchCreate(BaseModel):
    """Create production batch payload."""
    product_id: str = Field(..., description="Product being produced")
    planned_quantity: int = Field(..., ge=1)
    batch_number: Optional[str] = Field(None, min_length=1, description="Defaults to the batch id")
    priority: BatchPriority = Field("medium")
    operator: Optional[str] = Field(None)
    supervisor: Optional[str] = Field(None)
    start_date: Optional[datetime] = Field(None)
    notes: Optional[str] = Field(None)
    consumptions: List[MaterialConsumptionCreate] = Field(default_factory=list)


class BatchCompletion(BaseModel):
    """
    Close a batch and book its inventory effects.

    actual_quantity units are produced (new units for tracked products,
    base quantity otherwise); every planned consumption is applied.
    """
    actual_quantity: int = Field(..., ge=0)
    quality_grade: QualityGrade = Field("A")
    inspector: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    operator: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)


class BatchCancel(BaseModel):
    reason: Optional[str] = Field(None)


class ProductionBatchRead(BaseModel):
    """Production batch read model with its consumptions."""
    id: str = Field(..., description="Batch ID")
    batch_number: str
    product_id: str
    product_name: str
    planned_quantity: int
    actual_quantity: int
    status: str
    priority: str
    operator: Optional[str] = None
    supervisor: Optional[str] = None
    inspector: Optional[str] = None
    start_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    notes: Optional[str] = None
    consumptions: List[MaterialConsumptionRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
