"""
Unit tests for StockLoadService and build_start_positions.
"""

import pytest
from datetime import date
from unittest.mock import MagicMock, patch

from pydantic import ValidationError as PydanticValidationError

from exceptions import ReportGenerationError, StockLoadExistsError, StockLoadNotFoundError
from models.product import ProductResponse
from models.stock_load import StockLoadCreate, StockLoadResponse
from services.stock_load_service import StockLoadService, build_start_positions

from tests.factories import ProductFactory, StockLoadFactory

DAY = date(2025, 6, 2)


# ===================
# START POSITIONS
# ===================

class TestBuildStartPositions:
    """Tests for build_start_positions."""

    def test_units_merged_per_product(self):
        stock_load = StockLoadResponse(**StockLoadFactory.create(entries=[
            StockLoadFactory.entry("cola", "box", 5),
            StockLoadFactory.entry("cola", "pcs", 7),
            StockLoadFactory.entry("lime", "box", 2),
        ]))

        starts = build_start_positions("route-1", DAY, stock_load)

        assert starts.stock_loaded is True
        assert (starts.positions["cola"].start_box, starts.positions["cola"].start_pcs) == (5, 7)
        assert (starts.positions["lime"].start_box, starts.positions["lime"].start_pcs) == (2, 0)

    def test_missing_unit_counts_as_pieces(self):
        stock_load = StockLoadResponse(**StockLoadFactory.create(entries=[
            StockLoadFactory.entry("cola", None, 30),
        ]))

        starts = build_start_positions("route-1", DAY, stock_load)

        assert starts.positions["cola"].start_pcs == 30

    def test_product_not_loaded_starts_at_zero(self):
        stock_load = StockLoadResponse(**StockLoadFactory.create(entries=[]))

        starts = build_start_positions("route-1", DAY, stock_load)

        assert starts.stock_loaded is True
        assert starts.for_product("cola").start_box == 0

    def test_no_load(self):
        starts = build_start_positions("route-1", DAY, None)

        assert starts.stock_loaded is False
        assert starts.positions == {}

    def test_duplicate_entries_rejected(self):
        with pytest.raises(PydanticValidationError):
            StockLoadResponse(**StockLoadFactory.create(entries=[
                StockLoadFactory.entry("cola", "box", 1),
                StockLoadFactory.entry("cola", "box", 2),
            ]))


# ===================
# SERVICE
# ===================

@pytest.fixture
def counters():
    with patch("services.stock_load_service.get_stock_counter_service") as mock:
        yield mock.return_value


@pytest.fixture
def catalog():
    products = MagicMock()
    products.get_catalog.return_value = {
        "cola": ProductResponse(**ProductFactory.create(id="cola", name="Cola")),
        "broken": ProductResponse(**ProductFactory.create(id="broken", name="Broken", pcs_per_box=0)),
    }
    with patch("services.stock_load_service.get_product_service", return_value=products):
        yield products


class TestStockLoadServiceRead:
    """Tests for StockLoadService reads."""

    def test_get_for_route_date(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("daily_stock", [
            StockLoadFactory.create(id="load-1", entries=[StockLoadFactory.entry("cola", "box", 5)])
        ])
        service = StockLoadService()

        stock_load = service.get_for_route_date("route-1", DAY)

        assert stock_load.id == "load-1"
        assert stock_load.entries[0].quantity == 5

    def test_get_for_route_date_none(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("daily_stock", [])
        service = StockLoadService()

        assert service.get_for_route_date("route-1", DAY) is None
        assert service.get_start_positions("route-1", DAY).stock_loaded is False

    def test_get_by_id_not_found(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("daily_stock", [])
        service = StockLoadService()

        with pytest.raises(StockLoadNotFoundError):
            service.get_by_id("load-x")

    def test_unreadable_load_fails_report(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("daily_stock", [
            StockLoadFactory.create(id="load-1", entries=[StockLoadFactory.entry("cola", "carton", 5)])
        ])
        service = StockLoadService()

        with pytest.raises(ReportGenerationError) as exc_info:
            service.get_start_positions("route-1", DAY)

        assert exc_info.value.code == "REPORT_GENERATION_FAILED"
        assert exc_info.value.details["stock_load_id"] == "load-1"

    def test_duplicate_stored_entries_fail_report(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("daily_stock", [
            StockLoadFactory.create(id="load-1", entries=[
                StockLoadFactory.entry("cola", "box", 1),
                StockLoadFactory.entry("cola", "box", 2),
            ])
        ])
        service = StockLoadService()

        with pytest.raises(ReportGenerationError) as exc_info:
            service.get_by_id("load-1")

        assert exc_info.value.details["errors"][0]["type"] == "value_error"
        assert "ctx" not in exc_info.value.details["errors"][0]


class TestStockLoadServiceCreate:
    """Tests for StockLoadService.create()"""

    def make_request(self):
        return StockLoadCreate(
            route_id="route-1",
            date="2025-06-02",
            entries=[
                {"productId": "cola", "unit": "box", "quantity": 5},
                {"productId": "cola", "unit": "pcs", "quantity": 4},
                {"productId": "broken", "unit": "box", "quantity": 1},
                {"productId": "ghost", "unit": "pcs", "quantity": 3},
            ],
        )

    def test_creates_and_seeds_counters(self, mock_db, mock_supabase, counters, catalog):
        mock_supabase.set_table_data("daily_stock", [])
        service = StockLoadService()

        stock_load = service.create(self.make_request())

        assert stock_load.route_id == "route-1"
        assert stock_load.load_date == DAY
        assert len(stock_load.entries) == 4
        # Unknown and invalid-ratio products get no counter
        counters.seed.assert_called_once_with("route-1", DAY, {"cola": 124})

    def test_second_load_rejected(self, mock_db, mock_supabase, counters, catalog):
        mock_supabase.set_table_data("daily_stock", [StockLoadFactory.create()])
        service = StockLoadService()

        with pytest.raises(StockLoadExistsError) as exc_info:
            service.create(self.make_request())

        assert exc_info.value.status_code == 409
        counters.seed.assert_not_called()

    def test_unique_violation_mapped(self, counters, catalog):
        with patch("services.stock_load_service.get_supabase_client") as mock:
            db = mock.return_value
            db.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=[])
            db.table.return_value.insert.return_value.execute.side_effect = Exception(
                'duplicate key value violates unique constraint "daily_stock_route_id_date_key"'
            )
            service = StockLoadService()

            with pytest.raises(StockLoadExistsError):
                service.create(self.make_request())
