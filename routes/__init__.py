"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.products import router as products_router
from routes.delivery_routes import router as delivery_routes_router
from routes.stock_loads import router as stock_loads_router
from routes.sales import router as sales_router
from routes.reconciliation import router as reconciliation_router
from routes.allocation import router as allocation_router
from routes.summary import router as summary_router

__all__ = [
    "products_router",
    "delivery_routes_router",
    "stock_loads_router",
    "sales_router",
    "reconciliation_router",
    "allocation_router",
    "summary_router",
]
