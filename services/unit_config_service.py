"""Unit configuration service for box/piece calculations.

Every product is loaded and sold in two units: whole boxes and loose
pieces. All arithmetic across units goes through a normalized piece count
using the product's pieces-per-box ratio.

Ratio resolution for a catalog row:
    1. explicit ``pcs_per_box`` (must be positive)
    2. box price / piece price, rounded half-up, when both are known
    3. the configured default (24)
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple, Optional, Union

import structlog

from config import settings
from exceptions import InvalidRatioError
from models.product import ProductResponse, SaleUnit

logger = structlog.get_logger(__name__)


class BoxPieces(NamedTuple):
    """A quantity split into whole boxes and leftover pieces."""
    box: int
    pcs: int


def _check_ratio(pieces_per_box, product_id: Optional[str] = None) -> int:
    if (
        isinstance(pieces_per_box, bool)
        or not isinstance(pieces_per_box, int)
        or pieces_per_box <= 0
    ):
        raise InvalidRatioError(pieces_per_box, product_id)
    return pieces_per_box


def to_pieces(
    quantity: int,
    unit: Union[SaleUnit, str],
    pieces_per_box: int
) -> int:
    """
    Convert a quantity in one unit to pieces.

    Args:
        quantity: Non-negative count in ``unit``
        unit: box or pcs
        pieces_per_box: Product ratio (>= 1)

    Returns:
        Piece count

    Raises:
        InvalidRatioError: If pieces_per_box <= 0
    """
    _check_ratio(pieces_per_box)
    if SaleUnit(unit) is SaleUnit.BOX:
        return quantity * pieces_per_box
    return quantity


def pair_to_pieces(box: int, pcs: int, pieces_per_box: int) -> int:
    """Pieces in a (box, pcs) pair."""
    _check_ratio(pieces_per_box)
    return box * pieces_per_box + pcs


def from_pieces(total_pieces: int, pieces_per_box: int) -> BoxPieces:
    """
    Split a piece count into whole boxes and leftover pieces.

    ``box * pieces_per_box + pcs == total_pieces`` and ``pcs < pieces_per_box``.

    Raises:
        InvalidRatioError: If pieces_per_box <= 0
        ValueError: If total_pieces is negative
    """
    _check_ratio(pieces_per_box)
    if total_pieces < 0:
        raise ValueError(f"total_pieces must be non-negative, got {total_pieces}")
    box, pcs = divmod(total_pieces, pieces_per_box)
    return BoxPieces(box=box, pcs=pcs)


# ===================
# PRODUCT RESOLUTION
# ===================

def resolve_box_price(product: ProductResponse) -> Decimal:
    """Box price, falling back to the legacy single price column."""
    if product.box_price is not None:
        return product.box_price
    if product.price is not None:
        return product.price
    return Decimal("0")


def resolve_pieces_per_box(
    product: ProductResponse,
    default: Optional[int] = None
) -> int:
    """
    Pieces per box for a catalog row.

    Raises:
        InvalidRatioError: If the row declares a ratio <= 0
    """
    fallback = default or settings.default_pieces_per_box

    if product.pcs_per_box is not None:
        return _check_ratio(product.pcs_per_box, product.id)

    box_price = resolve_box_price(product)
    if product.pcs_price and box_price:
        try:
            ratio = (box_price / product.pcs_price).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        except (InvalidOperation, ZeroDivisionError):
            ratio = Decimal("0")
        if ratio.is_finite() and ratio > 0:
            return int(ratio)

    return fallback


def resolve_pcs_price(product: ProductResponse, pieces_per_box: int) -> Decimal:
    """Piece price, derived from the box price when the row has none."""
    if product.pcs_price is not None:
        return product.pcs_price
    _check_ratio(pieces_per_box, product.id)
    return resolve_box_price(product) / pieces_per_box


def unit_price(product: ProductResponse, unit: Union[SaleUnit, str], pieces_per_box: int) -> Decimal:
    """Current catalog price for one unit of a product."""
    if SaleUnit(unit) is SaleUnit.BOX:
        return resolve_box_price(product)
    return resolve_pcs_price(product, pieces_per_box)


def get_unit_config(product: ProductResponse) -> dict:
    """
    Get unit configuration for a product.

    Args:
        product: Catalog row

    Returns:
        Dict with:
            pieces_per_box: int
            box_price: Decimal
            pcs_price: Decimal

    Raises:
        InvalidRatioError: If the row declares a ratio <= 0
    """
    try:
        pieces_per_box = resolve_pieces_per_box(product)
    except InvalidRatioError:
        logger.error(
            "invalid_pieces_per_box",
            product_id=product.id,
            pieces_per_box=product.pcs_per_box,
        )
        raise

    config = {
        "pieces_per_box": pieces_per_box,
        "box_price": resolve_box_price(product),
        "pcs_price": resolve_pcs_price(product, pieces_per_box),
    }
    logger.debug(
        "unit_config_resolved",
        product_id=product.id,
        pieces_per_box=pieces_per_box,
    )
    return config
