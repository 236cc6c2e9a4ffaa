"""
Carpet inventory ledger and order fulfillment service.

Subpackages:
- core: settings, logging, error taxonomy, FastAPI dependencies
- db: SQLAlchemy models, engine/session management, Alembic migrations
- repositories: data access per aggregate
- services: stock ledger, unit state machine, order and purchase order workflows
- api: FastAPI application and routers
"""

__version__ = "0.1.0"
