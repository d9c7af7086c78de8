"""
Reconciliation API routes.

Remaining stock per product for a route/day, as shown on the billing
screen.
"""

from datetime import date
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.reconciliation import ReconciliationResult
from services.reconciliation_service import get_reconciliation_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


@router.get("/{route_id}/{load_date}", response_model=ReconciliationResult)
async def get_reconciliation(route_id: str, load_date: date):
    """
    Start, sold and remaining stock per product.

    Warnings (no stock loaded, oversold products, invalid ratios) are
    returned alongside the rows rather than as errors.

    Raises:
        500: A stored bill could not be read (REPORT_GENERATION_FAILED)
    """
    try:
        service = get_reconciliation_service()
        return service.reconcile_day(route_id, load_date)

    except Exception as e:
        return handle_error(e)
