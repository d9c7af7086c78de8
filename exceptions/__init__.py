"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,

    # Catalog
    ProductNotFoundError,
    RouteNotFoundError,

    # Units
    InvalidRatioError,

    # Stock loads
    StockLoadNotFoundError,
    NoStockLoadedError,
    StockLoadExistsError,

    # Sales
    SaleRecordNotFoundError,
    InsufficientStockError,
    AllocationConflictError,

    # Reconciliation
    NegativeReconciliationError,
    ReportGenerationError,

    # Alerts
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",

    # Catalog
    "ProductNotFoundError",
    "RouteNotFoundError",

    # Units
    "InvalidRatioError",

    # Stock loads
    "StockLoadNotFoundError",
    "NoStockLoadedError",
    "StockLoadExistsError",

    # Sales
    "SaleRecordNotFoundError",
    "InsufficientStockError",
    "AllocationConflictError",

    # Reconciliation
    "NegativeReconciliationError",
    "ReportGenerationError",

    # Alerts
    "TelegramError",
]
