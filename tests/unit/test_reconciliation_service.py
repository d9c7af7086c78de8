"""
Unit tests for reconciliation.

Covers the pure reconcile() engine and the ReconciliationService wrapper.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

from exceptions import TelegramError
from models.product import ProductResponse
from models.reconciliation import WarningType
from models.sales import SaleRecordResponse
from models.stock_load import StockLoadResponse
from services.reconciliation_service import (
    ALERT_HISTORY_DAYS,
    ALERT_MAX_ATTEMPTS,
    ReconciliationService,
    reconcile,
)
from services.sales_service import aggregate_sales
from services.stock_load_service import build_start_positions
from tests.factories import ProductFactory, SaleRecordFactory, StockLoadFactory

ROUTE_ID = "route-1"
DAY = date(2025, 6, 2)


def product(id: str, name: str, **overrides) -> ProductResponse:
    return ProductResponse(**ProductFactory.create(id=id, name=name, **overrides))


def load(*entries):
    stock_load = StockLoadResponse(**StockLoadFactory.create(
        entries=[StockLoadFactory.entry(*entry) for entry in entries]
    ))
    return build_start_positions(ROUTE_ID, DAY, stock_load)


def sales(*records, catalog=None):
    parsed = [
        SaleRecordResponse(**SaleRecordFactory.create(lines=lines))
        for lines in records
    ]
    return aggregate_sales(parsed, catalog or {})


@pytest.fixture
def catalog():
    return {
        "cola": product("cola", "Cola"),
        "lime": product("lime", "lime soda", pcs_per_box=12, box_price=120, pcs_price=10),
        "apple": product("apple", "Apple Fizz"),
    }


# ===================
# CORE ENGINE
# ===================

class TestReconcile:
    """Tests for reconcile()."""

    def test_remaining_is_start_minus_sold(self, catalog):
        start = load(("cola", "box", 5))
        sold = sales([
            SaleRecordFactory.line("cola", "box", 2),
            SaleRecordFactory.line("cola", "pcs", 3, price=10),
        ])

        result = reconcile(catalog, start, sold)

        row = result.position_for("cola")
        assert row.start_box == 5
        assert row.start_pcs == 0
        assert row.sold_box == 2
        assert row.sold_pcs == 3
        assert row.start_pieces == 120
        assert row.sold_pieces == 51
        assert row.remaining_pieces == 69
        assert (row.remaining_box, row.remaining_pcs) == (2, 21)
        assert row.revenue == Decimal("510")
        assert result.warnings == []

    def test_mixed_units_in_load(self, catalog):
        start = load(("lime", "box", 2), ("lime", "pcs", 5))
        sold = sales([SaleRecordFactory.line("lime", "pcs", 8, price=10)])

        row = reconcile(catalog, start, sold).position_for("lime")

        assert row.start_pieces == 29
        assert (row.remaining_box, row.remaining_pcs) == (1, 9)

    def test_row_carries_resolved_unit_config(self, catalog):
        start = load(("lime", "box", 1))
        sold = sales([SaleRecordFactory.line("lime", "pcs", 1, price=10)])

        row = reconcile(catalog, start, sold).position_for("lime")

        assert row.pieces_per_box == 12
        assert row.box_price == Decimal("120")
        assert row.pcs_price == Decimal("10")

    def test_oversell_is_clamped_and_reported(self, catalog):
        """Two bills of 3 boxes against a 5 box load: shown as zero left, 24 pcs short."""
        start = load(("cola", "box", 5))
        sold = sales(
            [SaleRecordFactory.line("cola", "box", 3)],
            [SaleRecordFactory.line("cola", "box", 3)],
        )

        result = reconcile(catalog, start, sold)

        row = result.position_for("cola")
        assert row.remaining_box == 0
        assert row.remaining_pcs == 0
        assert row.remaining_pieces == 0
        assert row.start_pieces == 120
        assert row.sold_pieces == 144
        assert row.deficit_pieces == 24

        warnings = [w for w in result.warnings if w.type is WarningType.NEGATIVE_RECONCILIATION]
        assert len(warnings) == 1
        assert warnings[0].product_id == "cola"
        assert warnings[0].details["deficit_pieces"] == 24

    def test_sold_but_never_loaded(self, catalog):
        start = load(("cola", "box", 1))
        sold = sales([SaleRecordFactory.line("apple", "pcs", 2, price=10)])

        result = reconcile(catalog, start, sold)

        row = result.position_for("apple")
        assert row.start_pieces == 0
        assert row.remaining_pieces == 0
        assert any(
            w.type is WarningType.NEGATIVE_RECONCILIATION and w.product_id == "apple"
            for w in result.warnings
        )

    def test_products_with_nothing_loaded_or_sold_are_dropped(self, catalog):
        start = load(("cola", "box", 0), ("lime", "box", 1))
        sold = sales()

        result = reconcile(catalog, start, sold)

        assert [p.product_id for p in result.positions] == ["lime"]

    def test_loaded_but_unsold_product_is_kept(self, catalog):
        result = reconcile(catalog, load(("cola", "pcs", 4)), sales())

        row = result.position_for("cola")
        assert row.sold_pieces == 0
        assert (row.remaining_box, row.remaining_pcs) == (0, 4)

    def test_rows_sorted_by_name_case_insensitively(self, catalog):
        start = load(("cola", "box", 1), ("lime", "box", 1), ("apple", "box", 1))

        result = reconcile(catalog, start, sales())

        assert [p.product_name for p in result.positions] == ["Apple Fizz", "Cola", "lime soda"]

    def test_invalid_ratio_drops_only_that_product(self, catalog):
        catalog["cola"] = product("cola", "Cola", pcs_per_box=0)
        start = load(("cola", "box", 5), ("lime", "box", 1))

        result = reconcile(catalog, start, sales())

        assert result.position_for("cola") is None
        assert result.position_for("lime") is not None
        warning = next(w for w in result.warnings if w.type is WarningType.INVALID_RATIO)
        assert warning.product_id == "cola"
        assert warning.details["pieces_per_box"] == 0

    def test_no_stock_loaded_is_explicit(self, catalog):
        start = build_start_positions(ROUTE_ID, DAY, None)
        sold = sales([SaleRecordFactory.line("cola", "box", 1)])

        result = reconcile(catalog, start, sold)

        assert result.stock_loaded is False
        assert result.warnings[0].type is WarningType.NO_STOCK_LOADED
        assert result.position_for("cola").start_pieces == 0

    def test_no_stock_loaded_and_no_sales(self, catalog):
        result = reconcile(catalog, build_start_positions(ROUTE_ID, DAY, None), sales())

        assert result.stock_loaded is False
        assert result.positions == []
        assert [w.type for w in result.warnings] == [WarningType.NO_STOCK_LOADED]

    def test_unknown_product_uses_default_ratio(self, catalog):
        start = load(("ghost", "box", 1))

        result = reconcile(catalog, start, sales())

        row = result.position_for("ghost")
        assert row.product_name == "ghost"
        assert row.pieces_per_box == 24
        assert any(w.type is WarningType.UNKNOWN_PRODUCT for w in result.warnings)

    def test_malformed_line_warnings_carried_over(self, catalog):
        start = load(("cola", "box", 1))
        sold = sales([SaleRecordFactory.line("cola", "crate", 2, price=10)])

        result = reconcile(catalog, start, sold)

        assert any(w.type is WarningType.MALFORMED_SALE_LINE for w in result.warnings)
        assert result.position_for("cola").sold_pcs == 2

    def test_deterministic(self, catalog):
        start = load(("cola", "box", 3), ("lime", "pcs", 40))
        sold = sales(
            [SaleRecordFactory.line("cola", "box", 1)],
            [SaleRecordFactory.line("lime", "pcs", 5, price=10)],
        )

        assert reconcile(catalog, start, sold) == reconcile(catalog, start, sold)

    def test_remaining_never_negative_over_generated_days(self, catalog):
        """Loads and sales of every size, including oversells."""
        for loaded_box in range(0, 4):
            for loaded_pcs in range(0, 30, 7):
                for sold_box in range(0, 5):
                    for sold_pcs in range(0, 40, 9):
                        start = load(("cola", "box", loaded_box), ("cola", "pcs", loaded_pcs))
                        sold = sales([
                            SaleRecordFactory.line("cola", "box", sold_box),
                            SaleRecordFactory.line("cola", "pcs", sold_pcs, price=10),
                        ])

                        row = reconcile(catalog, start, sold).position_for("cola")
                        if row is None:
                            continue
                        assert row.remaining_box >= 0
                        assert 0 <= row.remaining_pcs < row.pieces_per_box
                        assert row.remaining_pieces == max(0, row.start_pieces - row.sold_pieces)


# ===================
# SERVICE
# ===================

@pytest.fixture
def day_inputs(catalog):
    stock_load = StockLoadResponse(**StockLoadFactory.create(
        entries=[StockLoadFactory.entry("cola", "box", 5)]
    ))
    records = [
        SaleRecordResponse(**SaleRecordFactory.create(lines=[SaleRecordFactory.line("cola", "box", 3)]))
        for _ in range(2)
    ]

    stock_loads = MagicMock()
    stock_loads.get_start_positions.side_effect = (
        lambda route_id, load_date: build_start_positions(route_id, load_date, stock_load)
    )
    sales_service = MagicMock()
    sales_service.get_for_route_date.return_value = records
    products = MagicMock()
    products.get_catalog.return_value = catalog

    with patch("services.reconciliation_service.get_stock_load_service", return_value=stock_loads), \
            patch("services.reconciliation_service.get_sales_service", return_value=sales_service), \
            patch("services.reconciliation_service.get_product_service", return_value=products), \
            patch("services.reconciliation_service.send_reconciliation_alert") as alert:
        yield {"alert": alert, "records": records, "products": products}


class TestReconciliationService:
    """Tests for ReconciliationService."""

    def test_load_day_returns_result_and_records(self, day_inputs):
        service = ReconciliationService()

        result, records = service.load_day(ROUTE_ID, DAY)

        assert records == day_inputs["records"]
        assert result.sale_count == 2
        assert result.position_for("cola").deficit_pieces == 24
        day_inputs["products"].get_catalog.assert_called_once_with({"cola"})

    def test_oversell_alert_sent_once(self, day_inputs):
        service = ReconciliationService()

        service.reconcile_day(ROUTE_ID, DAY)
        service.reconcile_day(ROUTE_ID, DAY)

        assert day_inputs["alert"].call_count == 1
        warning, route_id, load_date = day_inputs["alert"].call_args.args
        assert warning.type is WarningType.NEGATIVE_RECONCILIATION
        assert route_id == ROUTE_ID
        assert load_date == DAY

    def test_alert_failure_does_not_fail_reconciliation(self, day_inputs):
        day_inputs["alert"].side_effect = TelegramError("down")
        service = ReconciliationService()

        result = service.reconcile_day(ROUTE_ID, DAY)

        assert result.position_for("cola").remaining_pieces == 0
        # Not marked as sent, so the next read retries
        service.reconcile_day(ROUTE_ID, DAY)
        assert day_inputs["alert"].call_count == 2

    def test_failing_alert_stops_after_max_attempts(self, day_inputs):
        day_inputs["alert"].side_effect = TelegramError("Bad Request: can't parse entities")
        service = ReconciliationService()

        for _ in range(ALERT_MAX_ATTEMPTS + 2):
            service.reconcile_day(ROUTE_ID, DAY)

        assert day_inputs["alert"].call_count == ALERT_MAX_ATTEMPTS

    def test_alert_history_is_bounded(self, day_inputs):
        service = ReconciliationService()

        for offset in range(ALERT_HISTORY_DAYS + 5):
            service.reconcile_day(ROUTE_ID, DAY + timedelta(days=offset))

        assert len(service._alert_attempts) == ALERT_HISTORY_DAYS
        assert (ROUTE_ID, DAY) not in service._alert_attempts
        assert (ROUTE_ID, DAY + timedelta(days=ALERT_HISTORY_DAYS + 4)) in service._alert_attempts
