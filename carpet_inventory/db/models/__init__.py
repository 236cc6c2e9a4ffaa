"""
ORM models for the catalog, sales, procurement, raw material inventory,
production and id sequence tables.

Importing this package registers every mapped class with the Base metadata
for Alembic and runtime usage.
"""

from .catalog import (  # noqa: F401
    Product,
    IndividualProduct,
)
from .sales import (  # noqa: F401
    Customer,
    Order,
    OrderItem,
)
from .procurement import (  # noqa: F401
    Supplier,
    PurchaseOrder,
    PurchaseOrderItem,
)
from .inventory import (  # noqa: F401
    RawMaterial,
    StockMovement,
    StockSettlement,
)
from .production import (  # noqa: F401
    ProductionBatch,
    MaterialConsumption,
)
from .sequences import IdSequence  # noqa: F401
