"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by domain module (catalog, sales, procurement, inventory)
plus common envelopes for success and error responses.
"""

from .common import ApiResponse, ErrorResponse, MessageResponse  # noqa: F401
