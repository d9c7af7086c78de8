"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService, get_product_service
from services.route_service import RouteService, get_route_service
from services.stock_counter_service import StockCounterService, get_stock_counter_service
from services.stock_load_service import StockLoadService, get_stock_load_service
from services.shop_directory_service import ShopNameCache, InMemoryShopNameCache
from services.sales_service import SalesService, get_sales_service, aggregate_sales
from services.reconciliation_service import (
    ReconciliationService,
    get_reconciliation_service,
    reconcile,
)
from services.allocation_service import (
    SaleDraft,
    ProductAllocation,
    compute_max_allowed,
    clamp_quantity,
)
from services.export_service import ExportService, get_export_service
from services.summary_service import (
    SummaryService,
    get_summary_service,
    build_summary,
    render_receipt,
)

__all__ = [
    "ProductService",
    "get_product_service",
    "RouteService",
    "get_route_service",
    "StockCounterService",
    "get_stock_counter_service",
    "StockLoadService",
    "get_stock_load_service",
    "ShopNameCache",
    "InMemoryShopNameCache",
    "SalesService",
    "get_sales_service",
    "aggregate_sales",
    "ReconciliationService",
    "get_reconciliation_service",
    "reconcile",
    "SaleDraft",
    "ProductAllocation",
    "compute_max_allowed",
    "clamp_quantity",
    "ExportService",
    "get_export_service",
    "SummaryService",
    "get_summary_service",
    "build_summary",
    "render_receipt",
]
