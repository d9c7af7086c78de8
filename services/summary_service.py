"""
Day summary service.

Rolls reconciliation rows into route/day totals and renders them as JSON,
a 32-column thermal-printer receipt, or an Excel workbook.
"""

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Iterable, Optional

import structlog

from config import settings
from models.reconciliation import ReconciliationResult
from models.sales import SaleRecordResponse
from models.summary import SummaryReport, SummaryTotals
from services.export_service import get_export_service
from services.reconciliation_service import get_reconciliation_service
from services.route_service import get_route_service
from utils.text_utils import center, fit

logger = structlog.get_logger(__name__)

# Receipt row columns: name | sold | left, 15 + 1 + 8 + 1 + 7 = 32
NAME_WIDTH = 15
SOLD_WIDTH = 8
LEFT_WIDTH = 7

CENT = Decimal("0.01")


def build_summary(
    result: ReconciliationResult,
    route_name: str,
    records: Optional[Iterable[SaleRecordResponse]] = None
) -> SummaryReport:
    """
    Build the day summary from reconciliation rows.

    Box and piece totals are summed per unit across products. Revenue is
    the sum of row revenue and is cross-checked against the bill totals as
    recorded.

    Args:
        result: Reconciled positions for the route/date
        route_name: Display name of the route
        records: Sale records for the cross-check; the totals carried on
            ``result`` are used when omitted

    Returns:
        SummaryReport
    """
    totals = SummaryTotals()
    grand_total = Decimal("0")
    for row in result.positions:
        totals.start_box += row.start_box
        totals.start_pcs += row.start_pcs
        totals.sold_box += row.sold_box
        totals.sold_pcs += row.sold_pcs
        totals.remaining_box += row.remaining_box
        totals.remaining_pcs += row.remaining_pcs
        grand_total += row.revenue

    if records is None:
        recorded = result.recorded_revenue
        sale_count = result.sale_count
    else:
        records = list(records)
        recorded = sum((r.total_amount for r in records), Decimal("0"))
        sale_count = len(records)

    mismatch = grand_total.quantize(CENT) != recorded.quantize(CENT)
    if mismatch:
        logger.warning(
            "summary_revenue_mismatch",
            route_id=result.route_id,
            date=result.load_date.isoformat(),
            line_revenue=str(grand_total),
            recorded_revenue=str(recorded)
        )

    return SummaryReport(
        route_id=result.route_id,
        route_name=route_name,
        report_date=result.load_date,
        stock_loaded=result.stock_loaded,
        rows=result.positions,
        totals=totals,
        grand_total_revenue=grand_total,
        recorded_revenue=recorded,
        revenue_mismatch=mismatch,
        sale_count=sale_count,
        warnings=result.warnings,
        generated_at=datetime.utcnow(),
    )


def format_box_pcs(box: int, pcs: int) -> str:
    """'<box>B | <pcs>p'"""
    return f"{box}B | {pcs}p"


def format_amount(amount: Decimal, currency: Optional[str] = None) -> str:
    symbol = settings.currency_symbol if currency is None else currency
    return f"{symbol}{amount.quantize(CENT)}"


def render_receipt_row(name: str, sold_box: int, sold_pcs: int, left_box: int, left_pcs: int) -> str:
    """One product row; always exactly 32 characters plus a newline."""
    return (
        fit(name, NAME_WIDTH)
        + "|"
        + fit(f"{sold_box}|{sold_pcs}", SOLD_WIDTH)
        + "|"
        + fit(f"{left_box}|{left_pcs}", LEFT_WIDTH)
        + "\n"
    )


def render_receipt(report: SummaryReport, width: Optional[int] = None) -> str:
    """
    Plain-text receipt for a thermal printer.

    Layout (32 columns):
        title, Date, Route, Start/Sold/Left totals,
        one row per product (name | sold box|pcs | left box|pcs),
        grand total.
    """
    width = width or settings.receipt_width
    rule = "-" * width
    totals = report.totals

    out = [
        center(settings.receipt_title, width) + "\n",
        fit(f"Date : {report.report_date.strftime('%d/%m/%Y')}", width).rstrip() + "\n",
        fit(f"Route: {report.route_name}", width).rstrip() + "\n",
        rule + "\n",
        f"Start: {format_box_pcs(totals.start_box, totals.start_pcs)}\n",
        f"Sold : {format_box_pcs(totals.sold_box, totals.sold_pcs)}\n",
        f"Left : {format_box_pcs(totals.remaining_box, totals.remaining_pcs)}\n",
        rule + "\n",
        fit("Item", NAME_WIDTH) + "|" + fit("Sold", SOLD_WIDTH) + "|" + fit("Left", LEFT_WIDTH) + "\n",
        rule + "\n",
    ]

    for row in report.rows:
        out.append(render_receipt_row(
            row.product_name, row.sold_box, row.sold_pcs, row.remaining_box, row.remaining_pcs
        ))

    out.append(rule + "\n")
    out.append(f"Grand Total: {format_amount(report.grand_total_revenue)}\n")
    if not report.stock_loaded:
        out.append("NO STOCK LOADED\n")

    return "".join(out)


class SummaryService:
    """
    Day summary for a route.

    Core methods:
    - get_summary: structured report
    - get_receipt: 32-column plain text
    - export_excel: .xlsx workbook
    """

    def get_summary(self, route_id: str, report_date: date) -> SummaryReport:
        """
        Raises:
            RouteNotFoundError: If the route doesn't exist
            ReportGenerationError: If a stored sale record cannot be read
        """
        route = get_route_service().get_by_id(route_id)
        result, records = get_reconciliation_service().load_day(route_id, report_date)
        report = build_summary(result, route.display_name, records)

        logger.info(
            "summary_generated",
            route_id=route_id,
            date=str(report_date),
            rows=len(report.rows),
            grand_total=str(report.grand_total_revenue)
        )
        return report

    def get_receipt(self, route_id: str, report_date: date) -> str:
        return render_receipt(self.get_summary(route_id, report_date))

    def export_excel(self, route_id: str, report_date: date) -> BytesIO:
        return get_export_service().generate_summary_excel(
            self.get_summary(route_id, report_date)
        )


# Singleton instance
_summary_service: Optional[SummaryService] = None


def get_summary_service() -> SummaryService:
    """Get or create SummaryService instance."""
    global _summary_service
    if _summary_service is None:
        _summary_service = SummaryService()
    return _summary_service
