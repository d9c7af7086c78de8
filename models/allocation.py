"""
Allocation schemas for live bill editing.
"""

from decimal import Decimal

from pydantic import Field

from models.base import BaseSchema
from models.product import SaleUnit


class AllocationRequest(BaseSchema):
    """Proposed quantity for one unit of one product on a bill draft."""

    remaining_box: int = Field(..., ge=0)
    remaining_pcs: int = Field(..., ge=0)
    pieces_per_box: int = Field(..., description="Must be positive")
    unit: SaleUnit
    requested_quantity: int = Field(..., description="Negative requests clamp to zero")
    pending_box: int = Field(0, ge=0)
    pending_pcs: int = Field(0, ge=0)


class AllocationResponse(BaseSchema):
    """Quantity the draft may hold for the edited unit."""

    unit: SaleUnit
    requested_quantity: int
    accepted_quantity: int = Field(..., ge=0)
    max_allowed: int = Field(..., ge=0)
    clamped: bool


class DraftLine(BaseSchema):
    """Non-zero line of a bill draft."""

    product_id: str
    product_name: str
    unit: SaleUnit
    quantity: int = Field(..., gt=0)
    unit_price: Decimal
    line_total: Decimal
