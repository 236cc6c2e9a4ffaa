from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

OrderStatus = Literal["pending", "accepted", "in_production", "ready", "dispatched", "delivered", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]


class CustomerCreate(BaseModel):
    """Create customer payload."""
    name: str = Field(..., min_length=1, description="Customer name")
    email: Optional[EmailStr] = Field(None)
    phone: Optional[str] = Field(None)
    address: Optional[str] = Field(None)
    gst_number: Optional[str] = Field(None)
    credit_limit: float = Field(0, description="Credit limit; must not be negative")


class CustomerRead(BaseModel):
    """Customer read model."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    credit_limit: float
    total_orders: int
    total_value: float
    last_order_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderItemCreate(BaseModel):
    """Order line payload; exactly one of product_id / raw_material_id."""
    product_type: Literal["product", "raw_material"] = Field("product")
    product_id: Optional[str] = Field(None)
    raw_material_id: Optional[str] = Field(None)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: Optional[float] = Field(None, ge=0, description="Explicit line total; defaults to quantity * unit_price")
    quality_grade: Optional[str] = Field(None)
    specifications: Optional[str] = Field(None)
    individual_product_ids: List[str] = Field(default_factory=list, description="Units to reserve for this line")

    @model_validator(mode="after")
    def _check_reference(self):
        if self.product_type == "product" and not self.product_id:
            raise ValueError("product_id is required for product lines")
        if self.product_type == "raw_material" and not self.raw_material_id:
            raise ValueError("raw_material_id is required for raw material lines")
        if self.product_type == "raw_material" and self.individual_product_ids:
            raise ValueError("raw material lines cannot select individual products")
        return self


class OrderItemRead(BaseModel):
    """Order line read model."""
    id: str
    order_id: str
    product_type: str
    product_id: Optional[str] = None
    raw_material_id: Optional[str] = None
    product_name: str
    quantity: int
    unit: str
    unit_price: float
    total_price: float
    quality_grade: Optional[str] = None
    specifications: Optional[str] = None
    selected_individual_products: List[Dict[str, Any]] = Field(default_factory=list)
    is_fully_selected: bool

    class Config:
        from_attributes = True


class OrderCreate(BaseModel):
    """Create order payload."""
    customer_id: Optional[str] = Field(None, description="Existing customer id")
    customer_name: Optional[str] = Field(None, description="Walk-in customer name when no id is given")
    customer_email: Optional[EmailStr] = Field(None)
    customer_phone: Optional[str] = Field(None)
    priority: Priority = Field("medium")
    gst_rate: float = Field(18, ge=0, le=100)
    gst_included: bool = Field(True)
    discount_amount: float = Field(0, ge=0)
    paid_amount: float = Field(0, ge=0)
    expected_delivery: Optional[date] = Field(None)
    special_instructions: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_customer(self):
        if not self.customer_id and not self.customer_name:
            raise ValueError("customer_id or customer_name is required")
        return self


class OrderRead(BaseModel):
    """Order read model with its lines."""
    id: str
    order_number: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: str
    workflow_step: str
    priority: str
    subtotal: float
    gst_rate: float
    gst_included: bool
    gst_amount: float
    discount_amount: float
    total_amount: float
    paid_amount: float
    outstanding_amount: float
    payment_status: str
    order_date: datetime
    expected_delivery: Optional[date] = None
    accepted_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    special_instructions: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    """Order status transition request."""
    status: OrderStatus = Field(..., description="Target status")
    notes: Optional[str] = Field(None)


class UnitSelection(BaseModel):
    """Replace the units allocated to an order line."""
    individual_product_ids: List[str] = Field(default_factory=list)


class PaymentUpdate(BaseModel):
    """Record the amount paid so far."""
    paid_amount: float = Field(..., description="Total amount paid; must not be negative")


class GstUpdate(BaseModel):
    """Change GST settings of an order."""
    gst_rate: Optional[float] = Field(None, ge=0, le=100)
    gst_included: Optional[bool] = Field(None)


class OrderStats(BaseModel):
    """Order counts and money totals."""
    total_orders: int
    by_status: Dict[str, int]
    total_revenue: float
    paid_amount: float
    outstanding_amount: float


class SettlementRead(BaseModel):
    """Stock settlement outbox row."""
    order_id: str
    trigger_status: str
    state: str
    attempts: int
    last_error: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
