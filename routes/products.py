"""
Product API routes.

Read-only: the billing form needs names, prices and pieces per box.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.product import ProductResponse, ProductListResponse
from services.product_service import get_product_service
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
    # Unexpected error
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


# ===================
# ROUTES
# ===================

@router.get("", response_model=ProductListResponse)
async def list_products():
    """Active products ordered by name."""
    try:
        service = get_product_service()
        products = service.get_active()
        return ProductListResponse(data=products, total=len(products))

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str):
    """
    Get a single product by ID.

    Raises:
        404: Product not found
    """
    try:
        service = get_product_service()
        return service.get_by_id(product_id)

    except Exception as e:
        return handle_error(e)
