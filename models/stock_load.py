"""
Stock load schemas.

A stock load is the declared start-of-day inventory for one route and date.
Entries are stored as JSON in ``daily_stock.stock`` using the camelCase
field names the billing screens write.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from models.base import BaseSchema, TimestampMixin
from models.product import SaleUnit


class StockLoadEntry(BaseSchema):
    """Quantity of one product loaded in one unit."""

    product_id: str = Field(..., alias="productId", min_length=1, description="Product UUID")
    unit: SaleUnit = Field(SaleUnit.PCS, description="box or pcs")
    quantity: int = Field(..., ge=0, description="Loaded quantity in the given unit")

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, v):
        """Entries written before units existed are piece counts."""
        if v is None or v == "":
            return SaleUnit.PCS
        return v


def _reject_duplicate_entries(entries: list[StockLoadEntry]) -> list[StockLoadEntry]:
    seen = set()
    for entry in entries:
        key = (entry.product_id, entry.unit)
        if key in seen:
            raise ValueError(
                f"Duplicate stock entry for product {entry.product_id} ({entry.unit.value})"
            )
        seen.add(key)
    return entries


class StockLoadCreate(BaseSchema):
    """Schema for loading the truck at the start of a route."""

    route_id: str = Field(..., min_length=1, description="Route UUID")
    load_date: date = Field(..., alias="date", description="Business date of the route")
    entries: list[StockLoadEntry] = Field(default_factory=list)

    @field_validator("load_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        """Parse date from string or datetime."""
        if isinstance(v, str):
            return date.fromisoformat(v[:10])
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("entries")
    @classmethod
    def unique_entries(cls, v: list[StockLoadEntry]) -> list[StockLoadEntry]:
        return _reject_duplicate_entries(v)


class StockLoadResponse(TimestampMixin, BaseSchema):
    """Stored stock load."""

    id: str
    route_id: str
    load_date: date = Field(..., alias="date")
    entries: list[StockLoadEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def map_stock_column(cls, data):
        """Rows keep entries in the ``stock`` JSON column."""
        if isinstance(data, dict) and "entries" not in data:
            data = {**data, "entries": data.get("stock") or []}
        return data

    @field_validator("entries")
    @classmethod
    def unique_entries(cls, v: list[StockLoadEntry]) -> list[StockLoadEntry]:
        return _reject_duplicate_entries(v)


class StartPosition(BaseSchema):
    """Start-of-day quantity for one product in both units."""

    product_id: str
    start_box: int = 0
    start_pcs: int = 0


class StartPositions(BaseSchema):
    """Projection of a stock load onto per-product start quantities."""

    route_id: str
    load_date: date = Field(..., alias="date")
    stock_loaded: bool = Field(..., description="False when no load exists for the route/date")
    positions: dict[str, StartPosition] = Field(default_factory=dict)

    def for_product(self, product_id: str) -> StartPosition:
        """Start position for a product, zero when it was not loaded."""
        return self.positions.get(product_id) or StartPosition(product_id=product_id)


class StockCounterResponse(BaseSchema):
    """Row of the incrementally maintained per-product stock counter."""

    id: Optional[str] = None
    route_id: str
    load_date: date = Field(..., alias="date")
    product_id: str
    start_pieces: int = Field(..., ge=0)
    sold_pieces: int = Field(0, ge=0)
    version: int = 0

    @property
    def available_pieces(self) -> int:
        return self.start_pieces - self.sold_pieces
