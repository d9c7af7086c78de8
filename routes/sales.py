"""
Sales API routes.

Records shop bills against the day's stock and serves bill history and
shop name suggestions for the billing form.
"""

from datetime import date
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog
from pydantic import BaseModel, Field

from models.sales import (
    SaleRecordCreate,
    SaleRecordResponse,
    SaleListResponse,
    ShopSuggestionsResponse,
)
from services.sales_service import get_sales_service
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


class HideShopRequest(BaseModel):
    """Shop to drop from a route's suggestions."""

    name: str = Field(..., min_length=1, max_length=255)


# ===================
# WRITE ROUTES
# ===================

@router.post("", response_model=SaleRecordResponse, status_code=201)
async def record_sale(data: SaleRecordCreate):
    """
    Record a completed bill.

    Stock for every line is claimed before the bill is stored, so two
    devices cannot both sell the last pieces of a product.

    Raises:
        404: No stock loaded / unknown product
        409: Not enough stock, or concurrent sales kept conflicting
        422: Invalid bill
    """
    try:
        service = get_sales_service()
        return service.record_sale(data)

    except Exception as e:
        return handle_error(e)


# ===================
# SHOP SUGGESTIONS
# ===================

@router.get("/shops/{route_id}", response_model=ShopSuggestionsResponse)
async def get_shop_suggestions(
    route_id: str,
    q: str = Query("", max_length=255, description="What the driver has typed")
):
    """Shop names on this route starting with ``q``."""
    try:
        service = get_sales_service()
        return service.get_shop_suggestions(route_id, q)

    except Exception as e:
        return handle_error(e)


@router.post("/shops/{route_id}/hide", status_code=204)
async def hide_shop(route_id: str, data: HideShopRequest):
    """Stop suggesting a shop on this route."""
    try:
        service = get_sales_service()
        service.hide_shop(route_id, data.name)
        return None

    except Exception as e:
        return handle_error(e)


# ===================
# READ ROUTES
# ===================

@router.get("", response_model=SaleListResponse)
async def list_sales(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    route_id: Optional[str] = Query(None, description="Filter by route"),
    sale_date: Optional[date] = Query(None, alias="date", description="Filter by date")
):
    """
    List bills with optional filters, newest first.
    """
    try:
        service = get_sales_service()

        records, total = service.get_all(
            page=page,
            page_size=page_size,
            route_id=route_id,
            sale_date=sale_date
        )

        total_pages = (total + page_size - 1) // page_size

        return SaleListResponse(
            data=records,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{record_id}", response_model=SaleRecordResponse)
async def get_sale_record(record_id: str):
    """
    Get a single bill by ID.

    Raises:
        404: Record not found
    """
    try:
        service = get_sales_service()
        return service.get_by_id(record_id)

    except Exception as e:
        return handle_error(e)
