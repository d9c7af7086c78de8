"""
Reconciliation schemas.

Positions are derived on demand from a stock load and the day's sale
records; none of these models is persisted.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class WarningType(str, Enum):
    """Conditions surfaced alongside reconciliation results."""
    NO_STOCK_LOADED = "NO_STOCK_LOADED"
    INVALID_RATIO = "INVALID_RATIO"
    MALFORMED_SALE_LINE = "MALFORMED_SALE_LINE"
    NEGATIVE_RECONCILIATION = "NEGATIVE_RECONCILIATION"
    UNKNOWN_PRODUCT = "UNKNOWN_PRODUCT"


class ReconciliationWarning(BaseSchema):
    """Non-fatal condition the operator should see."""

    type: WarningType
    message: str
    product_id: Optional[str] = None
    details: dict = Field(default_factory=dict)


class SoldPosition(BaseSchema):
    """Consumed quantities and revenue for one product."""

    product_id: str
    sold_box: int = 0
    sold_pcs: int = 0
    revenue: Decimal = Decimal("0")


class SalesAggregate(BaseSchema):
    """Fold of a day's sale records."""

    positions: dict[str, SoldPosition] = Field(default_factory=dict)
    warnings: list[ReconciliationWarning] = Field(default_factory=list)
    record_count: int = 0
    recorded_revenue: Decimal = Decimal("0")

    def for_product(self, product_id: str) -> SoldPosition:
        return self.positions.get(product_id) or SoldPosition(product_id=product_id)


class StockPosition(BaseSchema):
    """Start, sold and remaining quantities for one product on one route/day."""

    product_id: str
    product_name: str
    pieces_per_box: int
    start_box: int
    start_pcs: int
    sold_box: int
    sold_pcs: int
    remaining_box: int = Field(..., ge=0)
    remaining_pcs: int = Field(..., ge=0)
    revenue: Decimal = Decimal("0")
    box_price: Optional[Decimal] = None
    pcs_price: Optional[Decimal] = None
    start_pieces: int = Field(..., description="Start converted to pieces")
    sold_pieces: int = Field(..., description="Sold converted to pieces")
    remaining_pieces: int = Field(..., ge=0, description="Clamped at zero")

    @property
    def deficit_pieces(self) -> int:
        """Pieces sold beyond what was loaded; zero unless oversold."""
        return max(0, self.sold_pieces - self.start_pieces)


class ReconciliationResult(BaseSchema):
    """Positions for one route/date plus anything the operator must know."""

    route_id: str
    load_date: date = Field(..., alias="date")
    stock_loaded: bool
    positions: list[StockPosition] = Field(default_factory=list)
    warnings: list[ReconciliationWarning] = Field(default_factory=list)
    recorded_revenue: Decimal = Decimal("0")
    sale_count: int = 0

    def position_for(self, product_id: str) -> Optional[StockPosition]:
        for position in self.positions:
            if position.product_id == product_id:
                return position
        return None
