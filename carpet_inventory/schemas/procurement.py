from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

PurchaseOrderStatus = Literal["draft", "pending", "approved", "shipped", "delivered", "cancelled"]


class SupplierRead(BaseModel):
    """Supplier read model."""
    id: str = Field(..., description="Supplier ID")
    name: str = Field(..., description="Supplier name")
    contact_person: Optional[str] = Field(None)
    email: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    address: Optional[str] = Field(None)
    gst_number: Optional[str] = Field(None)
    performance_rating: float = Field(..., description="Running delivery rating (0-10)")
    total_orders: int = Field(..., description="Purchase orders placed")
    total_value: float = Field(..., description="Value of purchase orders placed")
    status: str = Field(...)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class SupplierCreate(BaseModel):
    """Create supplier payload."""
    name: str = Field(..., min_length=1, description="Unique supplier name")
    contact_person: Optional[str] = Field(None)
    email: Optional[EmailStr] = Field(None)
    phone: Optional[str] = Field(None)
    address: Optional[str] = Field(None)
    gst_number: Optional[str] = Field(None)
    performance_rating: float = Field(5, ge=0, le=10)


class PurchaseOrderItemCreate(BaseModel):
    """PO line payload, bound to a raw material id."""
    material_id: str = Field(..., description="Raw material id")
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)


class PurchaseOrderItemRead(BaseModel):
    """PO line read model."""
    id: str
    purchase_order_id: str
    line_no: int
    material_id: str
    material_name: str
    quantity: float
    unit: str
    unit_price: float
    total_price: float

    class Config:
        from_attributes = True


class PurchaseOrderCreate(BaseModel):
    """Create PO payload."""
    supplier_id: str = Field(..., description="Supplier id")
    status: Literal["draft", "pending"] = Field("draft")
    expected_delivery: Optional[date] = Field(None)
    tax_rate: float = Field(18, ge=0, le=100)
    discount_amount: float = Field(0, ge=0)
    paid_amount: float = Field(0, ge=0)
    notes: Optional[str] = Field(None)
    items: List[PurchaseOrderItemCreate] = Field(..., min_length=1)


class PurchaseOrderRead(BaseModel):
    """PO read model with lines."""
    id: str = Field(..., description="PO ID")
    order_number: str = Field(..., description="PO number")
    supplier_id: str = Field(..., description="Supplier")
    supplier_name: str
    status: str
    order_date: datetime
    expected_delivery: Optional[date] = None
    actual_delivery: Optional[datetime] = None
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    paid_amount: float
    outstanding_amount: float
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    delivery_rating: Optional[float] = None
    notes: Optional[str] = None
    status_history: List[Dict[str, Any]] = Field(default_factory=list)
    items: List[PurchaseOrderItemRead] = Field(default_factory=list)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class PurchaseOrderApprove(BaseModel):
    """Approval payload."""
    approved_by: str = Field(..., min_length=1)
    approval_notes: Optional[str] = Field(None)


class PurchaseOrderDeliver(BaseModel):
    """Delivery payload."""
    rating: Optional[float] = Field(None, ge=0, le=10, description="Supplier rating for this delivery")
    operator: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)


class PurchaseOrderCancel(BaseModel):
    """Cancellation payload."""
    reason: Optional[str] = Field(None)


class PurchaseOrderStatusUpdate(BaseModel):
    """Generic status change; approved/delivered/cancelled route to their workflows."""
    status: PurchaseOrderStatus
    notes: Optional[str] = Field(None)
    approved_by: Optional[str] = Field(None)
    rating: Optional[float] = Field(None, ge=0, le=10)


class PurchaseOrderStats(BaseModel):
    """Counts and values of purchase orders per status."""
    total_orders: int
    total_value: float
    by_status: Dict[str, int]
