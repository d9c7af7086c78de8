"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.product import (
    SaleUnit,
    ProductStatus,
    ProductResponse,
    ProductListResponse,
)
from models.route import (
    RouteResponse,
    RouteListResponse,
)
from models.stock_load import (
    StockLoadEntry,
    StockLoadCreate,
    StockLoadResponse,
    StartPosition,
    StartPositions,
    StockCounterResponse,
)
from models.sales import (
    SaleLine,
    SaleLineCreate,
    SaleRecordCreate,
    SaleRecordResponse,
    SaleListResponse,
    ShopSuggestionsResponse,
    normalize_sale_products,
)
from models.reconciliation import (
    WarningType,
    ReconciliationWarning,
    SoldPosition,
    SalesAggregate,
    StockPosition,
    ReconciliationResult,
)
from models.allocation import (
    AllocationRequest,
    AllocationResponse,
    DraftLine,
)
from models.summary import (
    SummaryTotals,
    SummaryReport,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Product
    "SaleUnit",
    "ProductStatus",
    "ProductResponse",
    "ProductListResponse",

    # Route
    "RouteResponse",
    "RouteListResponse",

    # Stock load
    "StockLoadEntry",
    "StockLoadCreate",
    "StockLoadResponse",
    "StartPosition",
    "StartPositions",
    "StockCounterResponse",

    # Sales
    "SaleLine",
    "SaleLineCreate",
    "SaleRecordCreate",
    "SaleRecordResponse",
    "SaleListResponse",
    "ShopSuggestionsResponse",
    "normalize_sale_products",

    # Reconciliation
    "WarningType",
    "ReconciliationWarning",
    "SoldPosition",
    "SalesAggregate",
    "StockPosition",
    "ReconciliationResult",

    # Allocation
    "AllocationRequest",
    "AllocationResponse",
    "DraftLine",

    # Summary
    "SummaryTotals",
    "SummaryReport",
]
