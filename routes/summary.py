"""
Day summary API routes.

The end-of-day report as JSON, as a 32-column receipt for the thermal
printer, or as an Excel download.
"""

from datetime import date
from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
import structlog

from models.summary import SummaryReport
from services.summary_service import get_summary_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


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

@router.get("/{route_id}/{report_date}", response_model=SummaryReport)
async def get_summary(route_id: str, report_date: date):
    """
    Day summary for a route.

    Raises:
        404: Route not found
        500: A stored bill could not be read (REPORT_GENERATION_FAILED)
    """
    try:
        service = get_summary_service()
        return service.get_summary(route_id, report_date)

    except Exception as e:
        return handle_error(e)


@router.get("/{route_id}/{report_date}/receipt", response_class=PlainTextResponse)
async def get_receipt(route_id: str, report_date: date):
    """Plain-text receipt for the thermal printer."""
    try:
        service = get_summary_service()
        return PlainTextResponse(service.get_receipt(route_id, report_date))

    except Exception as e:
        return handle_error(e)


@router.get("/{route_id}/{report_date}/export")
async def export_summary(route_id: str, report_date: date):
    """Excel download of the day summary."""
    try:
        service = get_summary_service()
        output = service.export_excel(route_id, report_date)
        filename = f"summary_{report_date.isoformat()}.xlsx"

        logger.info("summary_exported", route_id=route_id, date=str(report_date))

        return StreamingResponse(
            output,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    except Exception as e:
        return handle_error(e)
