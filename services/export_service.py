"""
Export service - Generate day summary Excel files.

One workbook per route/day: a SUMMARY sheet with the product table and
totals, and a WARNINGS sheet when reconciliation raised any.
"""

from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
import structlog

from models.reconciliation import WarningType
from models.summary import SummaryReport

logger = structlog.get_logger(__name__)

MONEY_FORMAT = "#,##0.00"

SUMMARY_HEADERS = [
    "Product",
    "Pcs/Box",
    "Start Box",
    "Start Pcs",
    "Sold Box",
    "Sold Pcs",
    "Left Box",
    "Left Pcs",
    "Box Price",
    "Pcs Price",
    "Revenue",
]


class ExportService:
    """Service for generating summary export files."""

    def generate_summary_excel(self, report: SummaryReport) -> BytesIO:
        """
        Generate Excel file for a day summary.

        Args:
            report: SummaryReport for one route/date

        Returns:
            BytesIO containing the Excel file
        """
        logger.info(
            "generating_summary_excel",
            route_id=report.route_id,
            date=str(report.report_date),
            rows=len(report.rows),
        )

        wb = Workbook()

        # Styles
        bold_font = Font(bold=True)
        title_font = Font(bold=True, size=14)
        thin_border = Border(bottom=Side(style="thin", color="000000"))
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")
        alert_fill = PatternFill(start_color="FFE0E0", end_color="FFE0E0", fill_type="solid")

        ws = wb.active
        ws.title = "SUMMARY"

        ws.column_dimensions["A"].width = 28
        for col in "BCDEFGHIJK":
            ws.column_dimensions[col].width = 11

        # Rows 1-4: heading
        ws["A1"] = "Day Summary"
        ws["A1"].font = title_font
        ws["A2"] = "Route:"
        ws["B2"] = report.route_name
        ws["A3"] = "Date:"
        ws["B3"] = report.report_date.strftime("%d/%m/%Y")
        ws["A4"] = "Bills:"
        ws["B4"] = report.sale_count

        if not report.stock_loaded:
            ws["D2"] = "NO STOCK LOADED"
            ws["D2"].font = bold_font
            ws["D2"].fill = alert_fill

        # Row 6: column headers
        header_row = 6
        for idx, header in enumerate(SUMMARY_HEADERS, start=1):
            cell = ws.cell(row=header_row, column=idx, value=header)
            cell.font = bold_font
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")

        oversold = {
            w.product_id
            for w in report.warnings
            if w.type is WarningType.NEGATIVE_RECONCILIATION
        }

        row = header_row + 1
        for position in report.rows:
            values = [
                position.product_name,
                position.pieces_per_box,
                position.start_box,
                position.start_pcs,
                position.sold_box,
                position.sold_pcs,
                position.remaining_box,
                position.remaining_pcs,
                float(position.box_price) if position.box_price is not None else None,
                float(position.pcs_price) if position.pcs_price is not None else None,
                float(position.revenue),
            ]
            for idx, value in enumerate(values, start=1):
                ws.cell(row=row, column=idx, value=value)
            for col in "IJK":
                ws[f"{col}{row}"].number_format = MONEY_FORMAT
            if position.product_id in oversold:
                ws[f"A{row}"].fill = alert_fill
            row += 1

        # Totals
        totals = report.totals
        ws[f"A{row}"] = "TOTAL"
        for col, value in zip(
            "CDEFGH",
            [
                totals.start_box,
                totals.start_pcs,
                totals.sold_box,
                totals.sold_pcs,
                totals.remaining_box,
                totals.remaining_pcs,
            ],
        ):
            ws[f"{col}{row}"] = value
        ws[f"K{row}"] = float(report.grand_total_revenue)
        ws[f"K{row}"].number_format = MONEY_FORMAT
        for col in "ABCDEFGHIJK":
            ws[f"{col}{row}"].font = bold_font
            ws[f"{col}{row}"].border = thin_border

        row += 2
        ws[f"A{row}"] = "Recorded bill total:"
        ws[f"K{row}"] = float(report.recorded_revenue)
        ws[f"K{row}"].number_format = MONEY_FORMAT
        if report.revenue_mismatch:
            ws[f"A{row}"].fill = alert_fill
            ws[f"K{row}"].fill = alert_fill

        if report.warnings:
            ws_warn = wb.create_sheet("WARNINGS")
            ws_warn.column_dimensions["A"].width = 28
            ws_warn.column_dimensions["B"].width = 38
            ws_warn.column_dimensions["C"].width = 70
            for idx, header in enumerate(["Type", "Product", "Message"], start=1):
                cell = ws_warn.cell(row=1, column=idx, value=header)
                cell.font = bold_font
                cell.fill = header_fill
                cell.border = thin_border
            for warn_row, warning in enumerate(report.warnings, start=2):
                ws_warn.cell(row=warn_row, column=1, value=warning.type.value)
                ws_warn.cell(row=warn_row, column=2, value=warning.product_id or "")
                ws_warn.cell(row=warn_row, column=3, value=warning.message)

        logger.info(
            "summary_excel_generated",
            route_id=report.route_id,
            rows=len(report.rows),
            warnings=len(report.warnings),
        )

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
