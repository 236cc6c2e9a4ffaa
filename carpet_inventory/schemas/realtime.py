from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class WsEnvelope(BaseModel):
    """Envelope for WebSocket messages."""
    type: str = Field(..., description="Message type (e.g., 'stock.low', 'stock.restocked').")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Message payload.")
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp (UTC).")


class StockEvent(BaseModel):
    """Low-stock or restock notice for a product or raw material."""
    event: Literal["stock.low", "stock.restocked"] = Field(..., description="Event type")
    entity_type: Literal["product", "raw_material"] = Field(..., description="Kind of stock record")
    entity_id: str = Field(..., description="Product or raw material id")
    name: str = Field(..., description="Display name")
    status: str = Field(..., description="Stock status after the change")
    current_stock: float = Field(..., description="Stock level after the change")
    threshold: Optional[float] = Field(default=None, description="Minimum level that triggered the event")
    reference_id: Optional[str] = Field(default=None, description="Order or purchase order that caused the change")
