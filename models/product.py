"""
Product catalog schemas.

The catalog is owned elsewhere; this service only reads it. Older rows
carry a single ``price`` (the box price) and no ratio, newer rows carry
``box_price``, ``pcs_price`` and ``pcs_per_box``.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from models.base import BaseSchema


class SaleUnit(str, Enum):
    """Units a product is loaded and sold in."""
    BOX = "box"
    PCS = "pcs"

    @property
    def other(self) -> "SaleUnit":
        """The opposite unit."""
        return SaleUnit.PCS if self is SaleUnit.BOX else SaleUnit.BOX


class ProductStatus(str, Enum):
    """Catalog status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProductResponse(BaseSchema):
    """Product row as stored in the catalog."""

    id: str = Field(..., description="Product UUID")
    name: str = Field(..., min_length=1, description="Display name")
    price: Optional[Decimal] = Field(None, ge=0, description="Legacy box price")
    box_price: Optional[Decimal] = Field(None, ge=0, description="Price per box")
    pcs_price: Optional[Decimal] = Field(None, ge=0, description="Price per piece")
    pcs_per_box: Optional[int] = Field(None, description="Pieces in one box")
    status: Optional[str] = Field(ProductStatus.ACTIVE.value, description="active / inactive")

    @field_validator("price", "box_price", "pcs_price", mode="before")
    @classmethod
    def ensure_decimal(cls, v):
        """Store prices as Decimal regardless of JSON number type."""
        if v is not None:
            return Decimal(str(v))
        return v


class ProductListResponse(BaseSchema):
    """Active catalog listing."""

    data: list[ProductResponse]
    total: int
