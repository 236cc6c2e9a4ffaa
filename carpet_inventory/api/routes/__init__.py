"""
API route modules.

- Products and individual products: catalog and the unit lifecycle
- Orders and customers: order fulfillment workflow
- Raw materials, purchase orders and suppliers: inbound stock
- Production: batches that consume material and produce units
- Operations: id sequences and stock settlement maintenance

Routers are included from carpet_inventory.api.main (under the /api/v1 prefix).
"""

from .customers import router as customers_router  # noqa: F401
from .individual_products import router as individual_products_router  # noqa: F401
from .operations import router as operations_router  # noqa: F401
from .orders import router as orders_router  # noqa: F401
from .production import router as production_router  # noqa: F401
from .products import router as products_router  # noqa: F401
from .purchase_orders import router as purchase_orders_router  # noqa: F401
from .raw_materials import router as raw_materials_router  # noqa: F401
from .suppliers import router as suppliers_router  # noqa: F401
