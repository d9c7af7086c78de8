"""
Allocation API routes.

Stateless quantity clamp used by the billing form while a bill is edited.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.allocation import AllocationRequest, AllocationResponse
from services.allocation_service import clamp_allocation
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


@router.post("/clamp", response_model=AllocationResponse)
async def clamp(data: AllocationRequest):
    """
    Largest quantity the edited unit may hold next to the other unit.

    Raises:
        422: pieces_per_box <= 0 (INVALID_RATIO)
    """
    try:
        return clamp_allocation(data)

    except Exception as e:
        return handle_error(e)
