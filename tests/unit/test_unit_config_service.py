"""
Unit tests for unit_config_service.

Covers box/piece conversion and per-product ratio and price resolution.
"""

import pytest
from decimal import Decimal

from exceptions import InvalidRatioError
from models.product import ProductResponse, SaleUnit
from services.unit_config_service import (
    BoxPieces,
    from_pieces,
    get_unit_config,
    pair_to_pieces,
    resolve_box_price,
    resolve_pcs_price,
    resolve_pieces_per_box,
    to_pieces,
    unit_price,
)
from tests.factories import ProductFactory


def make_product(**overrides) -> ProductResponse:
    return ProductResponse(**ProductFactory.create(**overrides))


# ===================
# CONVERSION
# ===================

class TestToPieces:
    """Tests for to_pieces."""

    def test_boxes_scale_by_ratio(self):
        assert to_pieces(3, SaleUnit.BOX, 24) == 72

    def test_pieces_unchanged(self):
        assert to_pieces(5, SaleUnit.PCS, 24) == 5

    def test_accepts_unit_string(self):
        assert to_pieces(2, "box", 12) == 24

    def test_zero_quantity(self):
        assert to_pieces(0, SaleUnit.BOX, 24) == 0

    @pytest.mark.parametrize("ratio", [0, -1, -24])
    def test_non_positive_ratio_raises(self, ratio):
        with pytest.raises(InvalidRatioError) as exc_info:
            to_pieces(1, SaleUnit.BOX, ratio)

        assert exc_info.value.code == "INVALID_RATIO"
        assert exc_info.value.status_code == 422

    def test_boolean_ratio_rejected(self):
        with pytest.raises(InvalidRatioError):
            to_pieces(1, SaleUnit.BOX, True)


class TestFromPieces:
    """Tests for from_pieces."""

    def test_splits_into_box_and_pieces(self):
        assert from_pieces(58, 24) == BoxPieces(box=2, pcs=10)

    def test_exact_boxes(self):
        assert from_pieces(120, 24) == BoxPieces(box=5, pcs=0)

    def test_zero(self):
        assert from_pieces(0, 24) == BoxPieces(box=0, pcs=0)

    def test_ratio_of_one_is_all_boxes(self):
        assert from_pieces(7, 1) == BoxPieces(box=7, pcs=0)

    def test_negative_total_raises(self):
        with pytest.raises(ValueError):
            from_pieces(-1, 24)

    def test_zero_ratio_raises(self):
        with pytest.raises(InvalidRatioError):
            from_pieces(10, 0)

    def test_round_trip_over_generated_inputs(self):
        """box * ratio + pcs always gives back the total, with pcs < ratio."""
        for ratio in (1, 2, 6, 12, 24, 25, 48):
            for total in range(0, 300, 7):
                box, pcs = from_pieces(total, ratio)
                assert box >= 0
                assert 0 <= pcs < ratio
                assert box * ratio + pcs == total
                assert pair_to_pieces(box, pcs, ratio) == total


# ===================
# PRODUCT RESOLUTION
# ===================

class TestResolvePiecesPerBox:
    """Tests for resolve_pieces_per_box."""

    def test_explicit_ratio_wins(self):
        product = make_product(pcs_per_box=12, box_price=240, pcs_price=10)
        assert resolve_pieces_per_box(product) == 12

    def test_derived_from_prices(self):
        product = make_product(pcs_per_box=None, box_price=240, pcs_price=10)
        assert resolve_pieces_per_box(product) == 24

    def test_derived_ratio_rounds_half_up(self):
        product = make_product(pcs_per_box=None, box_price=25, pcs_price=10)
        assert resolve_pieces_per_box(product) == 3

    def test_derived_ratio_rounds_to_nearest(self):
        product = make_product(pcs_per_box=None, box_price=250, pcs_price=12)
        assert resolve_pieces_per_box(product) == 21

    def test_legacy_price_used_as_box_price(self):
        product = make_product(pcs_per_box=None, box_price=None, price=120, pcs_price=10)
        assert resolve_pieces_per_box(product) == 12

    def test_defaults_to_24_without_prices(self):
        product = ProductResponse(**ProductFactory.create_legacy())
        assert resolve_pieces_per_box(product) == 24

    def test_zero_piece_price_falls_back(self):
        product = make_product(pcs_per_box=None, box_price=240, pcs_price=0)
        assert resolve_pieces_per_box(product) == 24

    def test_custom_default(self):
        product = ProductResponse(**ProductFactory.create_legacy())
        assert resolve_pieces_per_box(product, default=6) == 6

    @pytest.mark.parametrize("ratio", [0, -6])
    def test_declared_non_positive_ratio_raises(self, ratio):
        product = make_product(pcs_per_box=ratio)

        with pytest.raises(InvalidRatioError) as exc_info:
            resolve_pieces_per_box(product)

        assert exc_info.value.details["product_id"] == product.id


class TestPrices:
    """Tests for box/piece price resolution."""

    def test_box_price_prefers_box_price_column(self):
        product = make_product(box_price=240, price=200)
        assert resolve_box_price(product) == Decimal("240")

    def test_box_price_falls_back_to_legacy_price(self):
        product = make_product(box_price=None, price=200)
        assert resolve_box_price(product) == Decimal("200")

    def test_piece_price_from_column(self):
        product = make_product(pcs_price=11)
        assert resolve_pcs_price(product, 24) == Decimal("11")

    def test_piece_price_derived_from_box_price(self):
        product = make_product(box_price=240, pcs_price=None)
        assert resolve_pcs_price(product, 24) == Decimal("10")

    def test_unit_price_per_unit(self):
        product = make_product(box_price=240, pcs_price=11)
        assert unit_price(product, SaleUnit.BOX, 24) == Decimal("240")
        assert unit_price(product, SaleUnit.PCS, 24) == Decimal("11")


class TestGetUnitConfig:
    """Tests for get_unit_config."""

    def test_returns_resolved_values(self):
        product = make_product(pcs_per_box=None, box_price=240, pcs_price=None, price=None)

        config = get_unit_config(product)

        assert config == {
            "pieces_per_box": 24,
            "box_price": Decimal("240"),
            "pcs_price": Decimal("10"),
        }

    def test_invalid_ratio_propagates(self):
        product = make_product(pcs_per_box=0)

        with pytest.raises(InvalidRatioError):
            get_unit_config(product)
