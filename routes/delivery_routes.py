"""
Delivery route API routes.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.route import RouteListResponse, RouteResponse
from services.route_service import get_route_service
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


@router.get("", response_model=RouteListResponse)
async def list_routes():
    """Active routes, with legacy names mapped and retired routes hidden."""
    try:
        service = get_route_service()
        routes = service.get_active()
        return RouteListResponse(data=routes, total=len(routes))

    except Exception as e:
        return handle_error(e)


@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(route_id: str):
    """
    Get a single route.

    Raises:
        404: Route not found
    """
    try:
        service = get_route_service()
        return service.get_by_id(route_id)

    except Exception as e:
        return handle_error(e)
