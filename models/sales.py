"""
Sale record schemas.

One sale record is one printed bill for one shop. Lines are stored in the
``sales.products_sold`` JSON column, which has had three shapes over time:
a bare list of lines, an object ``{"items": [...], "shop_address": ...,
"shop_phone": ...}``, or either of those serialized as a string.
"""

import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from models.base import BaseSchema, TimestampMixin
from models.product import SaleUnit

PHONE_PATTERN = re.compile(r"^\d{10}$")


def normalize_sale_products(payload: Any) -> tuple[list[dict], dict]:
    """
    Flatten a stored ``products_sold`` value into line dicts.

    Args:
        payload: Raw column value

    Returns:
        Tuple of (line dicts, shop metadata dict). Unrecognised shapes
        yield no lines.
    """
    if not payload:
        return [], {}
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            return [], {}
    if isinstance(payload, list):
        return payload, {}
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        meta = {
            "shop_address": payload.get("shop_address") or None,
            "shop_phone": payload.get("shop_phone") or None,
        }
        return payload["items"], meta
    return [], {}


def _to_decimal(v):
    if v is None or v == "":
        return None
    return Decimal(str(v))


class SaleLine(BaseSchema):
    """
    Sale line as read back from storage.

    The unit is kept as the raw stored string; aggregation decides how to
    treat values outside box/pcs. Price and total are optional because
    early records did not store them.
    """

    product_id: str = Field(..., alias="productId", min_length=1)
    product_name: Optional[str] = Field(None, alias="productName")
    unit: Optional[str] = Field(None, description="Stored unit, normally box or pcs")
    quantity: int = Field(0, ge=0)
    unit_price: Optional[Decimal] = Field(None, alias="price")
    line_total: Optional[Decimal] = Field(None, alias="total")

    @field_validator("unit", mode="before")
    @classmethod
    def unit_as_text(cls, v):
        """Legacy rows hold numeric unit codes; keep them as text."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def missing_quantity_is_zero(cls, v):
        return 0 if v is None else v

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def ensure_decimal(cls, v):
        return _to_decimal(v)


class SaleLineCreate(BaseSchema):
    """A line on a bill being recorded."""

    product_id: str = Field(..., alias="productId", min_length=1)
    product_name: Optional[str] = Field(None, alias="productName")
    unit: SaleUnit
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=1, alias="price")

    @field_validator("unit_price", mode="before")
    @classmethod
    def ensure_decimal(cls, v):
        return _to_decimal(v)

    @property
    def line_total(self) -> Decimal:
        """Total is fixed at the time of sale."""
        return self.unit_price * self.quantity

    def to_stored(self) -> dict:
        """Line dict in the stored camelCase shape."""
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "unit": self.unit.value,
            "quantity": self.quantity,
            "price": float(self.unit_price),
            "total": float(self.line_total),
        }


class SaleRecordCreate(BaseSchema):
    """Schema for recording a completed bill."""

    route_id: str = Field(..., min_length=1)
    sale_date: date = Field(..., alias="date")
    shop_name: str = Field(..., min_length=1, max_length=255)
    shop_address: Optional[str] = Field(None, max_length=500)
    shop_phone: Optional[str] = Field(None, description="10-digit mobile number")
    lines: list[SaleLineCreate] = Field(..., min_length=1)

    @field_validator("sale_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        """Parse date from string or datetime."""
        if isinstance(v, str):
            return date.fromisoformat(v[:10])
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("shop_phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not PHONE_PATTERN.match(v):
            raise ValueError("Enter a valid 10-digit mobile number")
        return v

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def to_stored_products(self) -> dict:
        """Value for the ``products_sold`` column."""
        return {
            "items": [line.to_stored() for line in self.lines],
            "shop_address": self.shop_address or "",
            "shop_phone": self.shop_phone or "",
        }


class SaleRecordResponse(TimestampMixin, BaseSchema):
    """Stored sale record with normalized lines."""

    id: str
    route_id: str
    sale_date: date = Field(..., alias="date")
    shop_name: str
    shop_address: Optional[str] = None
    shop_phone: Optional[str] = None
    lines: list[SaleLine] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    @model_validator(mode="before")
    @classmethod
    def map_products_sold(cls, data):
        """Rows keep lines and shop details in ``products_sold``."""
        if isinstance(data, dict) and "lines" not in data:
            items, meta = normalize_sale_products(data.get("products_sold"))
            data = {**data, "lines": items}
            for key, value in meta.items():
                if not data.get(key):
                    data[key] = value
        return data

    @field_validator("total_amount", mode="before")
    @classmethod
    def ensure_decimal(cls, v):
        return _to_decimal(v) or Decimal("0")


class SaleListResponse(BaseSchema):
    """Paginated sales list response."""

    data: list[SaleRecordResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ShopSuggestionsResponse(BaseSchema):
    """Shop name suggestions for the billing form."""

    route_id: str
    query: str = ""
    suggestions: list[str] = Field(default_factory=list)
    details: dict[str, dict] = Field(default_factory=dict)
