"""
Domain error taxonomy.

Services raise these; the API layer maps them to HTTP responses through
``status_code`` and ``error_type``. ``TransientStoreError`` never leaves the
sequence allocator.
"""

from __future__ import annotations

from typing import Any, Optional


class InventoryError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_type: str = "inventory_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(InventoryError):
    """An entity id does not exist."""

    status_code = 404
    error_type = "not_found"

    @classmethod
    def for_entity(cls, entity: str, entity_id: str) -> "NotFoundError":
        return cls(f"{entity} not found", details={"id": entity_id})


class ValidationError(InventoryError):
    """Malformed or disallowed input."""

    status_code = 400
    error_type = "validation_error"


class ConflictError(InventoryError):
    """State collision: concurrent reservation, illegal transition, duplicate key."""

    status_code = 409
    error_type = "conflict"


class TransientStoreError(InventoryError):
    """Recoverable data-layer failure, handled locally by the caller."""

    status_code = 503
    error_type = "transient_store_error"
