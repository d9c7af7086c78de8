"""
Day summary report schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.reconciliation import ReconciliationWarning, StockPosition


class SummaryTotals(BaseSchema):
    """
    Per-unit tallies across products.

    Box and piece columns are summed independently; products differ in
    pieces per box so these are counts, not a physical quantity.
    """

    start_box: int = 0
    start_pcs: int = 0
    sold_box: int = 0
    sold_pcs: int = 0
    remaining_box: int = 0
    remaining_pcs: int = 0


class SummaryReport(BaseSchema):
    """Day summary for one route and date."""

    route_id: str
    route_name: str
    report_date: date = Field(..., alias="date")
    stock_loaded: bool
    rows: list[StockPosition] = Field(default_factory=list)
    totals: SummaryTotals = Field(default_factory=SummaryTotals)
    grand_total_revenue: Decimal = Decimal("0")
    recorded_revenue: Decimal = Field(
        Decimal("0"),
        description="Sum of bill totals as recorded, for cross-checking line revenue"
    )
    revenue_mismatch: bool = False
    sale_count: int = 0
    warnings: list[ReconciliationWarning] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
