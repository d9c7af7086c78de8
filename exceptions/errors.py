"""
Custom exception classes for the application.

Every error carries a stable code so the billing and summary screens can
branch on it without parsing messages.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={**(details or {}), field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class RouteNotFoundError(NotFoundError):
    """Route not found."""

    def __init__(self, route_id: str):
        super().__init__(
            resource="Route",
            identifier=route_id,
            code="ROUTE_NOT_FOUND"
        )


# ===================
# UNIT ERRORS
# ===================

class InvalidRatioError(ValidationError):
    """Pieces-per-box ratio is zero or negative."""

    def __init__(self, pieces_per_box: Any, product_id: Optional[str] = None):
        details = {"pieces_per_box": pieces_per_box}
        if product_id is not None:
            details["product_id"] = product_id
        super().__init__(
            code="INVALID_RATIO",
            message="Pieces per box must be a positive integer",
            details=details
        )


# ===================
# STOCK LOAD ERRORS
# ===================

class StockLoadNotFoundError(NotFoundError):
    """Stock load record not found."""

    def __init__(self, stock_load_id: str):
        super().__init__(
            resource="Stock load",
            identifier=stock_load_id,
            code="STOCK_LOAD_NOT_FOUND"
        )


class NoStockLoadedError(AppError):
    """No stock load exists for a route/date that requires one."""

    def __init__(self, route_id: str, load_date: str):
        super().__init__(
            code="NO_STOCK_LOADED",
            message="No starting stock has been loaded for this route and date",
            status_code=404,
            details={"route_id": route_id, "date": load_date}
        )


class StockLoadExistsError(DuplicateError):
    """A stock load already exists for the route/date pair."""

    def __init__(self, route_id: str, load_date: str):
        super().__init__(
            resource="Stock load",
            field="date",
            value=load_date,
            code="STOCK_LOAD_EXISTS",
            details={"route_id": route_id}
        )


# ===================
# SALES ERRORS
# ===================

class SaleRecordNotFoundError(NotFoundError):
    """Sale record not found."""

    def __init__(self, record_id: str):
        super().__init__(
            resource="Sale record",
            identifier=record_id,
            code="SALE_RECORD_NOT_FOUND"
        )


class InsufficientStockError(ConflictError):
    """Sale would push remaining pieces below zero."""

    def __init__(
        self,
        product_id: str,
        requested_pieces: int,
        available_pieces: int
    ):
        super().__init__(
            code="INSUFFICIENT_STOCK",
            message="Sale exceeds remaining stock for product",
            details={
                "product_id": product_id,
                "requested_pieces": requested_pieces,
                "available_pieces": available_pieces,
            }
        )


class AllocationConflictError(ConflictError):
    """Concurrent sales kept changing the stock counter; sale not recorded."""

    def __init__(self, product_id: str, attempts: int):
        super().__init__(
            code="ALLOCATION_CONFLICT",
            message="Stock changed concurrently, please refresh and retry",
            details={"product_id": product_id, "attempts": attempts}
        )


# ===================
# RECONCILIATION ERRORS
# ===================

class NegativeReconciliationError(ConflictError):
    """Sold pieces exceed started pieces for a product."""

    def __init__(
        self,
        product_id: str,
        start_pieces: int,
        sold_pieces: int
    ):
        super().__init__(
            code="NEGATIVE_RECONCILIATION",
            message="Recorded sales exceed loaded stock",
            details={
                "product_id": product_id,
                "start_pieces": start_pieces,
                "sold_pieces": sold_pieces,
                "deficit_pieces": sold_pieces - start_pieces,
            }
        )


class ReportGenerationError(AppError):
    """Report inputs could not be read; no partial report is produced."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="REPORT_GENERATION_FAILED",
            message=message,
            status_code=500,
            details=details
        )


# ===================
# ALERT ERRORS
# ===================

class TelegramError(ExternalServiceError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="Telegram",
            message=message,
            details=details
        )
