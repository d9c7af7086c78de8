"""
Stock load API routes.

The start-of-day truck load for a route, recorded once per date.
"""

from datetime import date
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.stock_load import StockLoadCreate, StockLoadResponse, StartPositions
from services.stock_load_service import get_stock_load_service
from exceptions import AppError, NoStockLoadedError

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


# ===================
# ROUTES
# ===================

@router.post("", response_model=StockLoadResponse, status_code=201)
async def create_stock_load(data: StockLoadCreate):
    """
    Record the start-of-day load for a route.

    Raises:
        409: The route/date was already loaded
        422: Invalid entries
    """
    try:
        service = get_stock_load_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)


@router.get("/id/{stock_load_id}", response_model=StockLoadResponse)
async def get_stock_load_by_id(stock_load_id: str):
    """
    Get a load by ID.

    Raises:
        404: Load not found
    """
    try:
        service = get_stock_load_service()
        return service.get_by_id(stock_load_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{route_id}/{load_date}", response_model=StockLoadResponse)
async def get_stock_load(route_id: str, load_date: date):
    """
    Get the load for a route and date.

    Raises:
        404: Nothing loaded yet (NO_STOCK_LOADED)
    """
    try:
        service = get_stock_load_service()
        stock_load = service.get_for_route_date(route_id, load_date)
        if stock_load is None:
            raise NoStockLoadedError(route_id, load_date.isoformat())
        return stock_load

    except Exception as e:
        return handle_error(e)


@router.get("/{route_id}/{load_date}/positions", response_model=StartPositions)
async def get_start_positions(route_id: str, load_date: date):
    """Per-product start quantities; ``stock_loaded`` is false when nothing was loaded."""
    try:
        service = get_stock_load_service()
        return service.get_start_positions(route_id, load_date)

    except Exception as e:
        return handle_error(e)
