"""
Delivery route schemas.
"""

from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class RouteResponse(BaseSchema):
    """A delivery route as shown to drivers."""

    id: str = Field(..., description="Route UUID")
    name: str = Field(..., description="Stored route name")
    display_name: str = Field(..., description="Name shown in screens and receipts")
    description: Optional[str] = None
    is_active: bool = True


class RouteListResponse(BaseSchema):
    """Visible active routes."""

    data: list[RouteResponse]
    total: int
