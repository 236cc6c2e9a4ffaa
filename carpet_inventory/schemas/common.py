from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Timestamps(BaseModel):
    """Common created/updated timestamp fields."""
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


# PUBLIC_INTERFACE
class ApiResponse(BaseModel, Generic[T]):
    """Success envelope wrapping every endpoint payload."""
    success: bool = Field(default=True, description="Always true for successful responses")
    data: T = Field(..., description="Response payload")


class ErrorInfo(BaseModel):
    """Structured error description."""
    type: str = Field(..., description="Machine-readable error type code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Error envelope returned by the exception handlers."""
    success: bool = Field(default=False, description="Always false for errors")
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")


class SequenceRead(BaseModel):
    """Counter state of the id allocator for one prefix and scope."""
    prefix: str = Field(..., description="Identifier prefix")
    date_str: str = Field(..., description="YYMMDD or 'global'")
    last_sequence: int = Field(..., description="Last issued value")
    updated_at: datetime = Field(..., description="Last allocation time")

    class Config:
        from_attributes = True
