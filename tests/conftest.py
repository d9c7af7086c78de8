"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time and require these
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime
from typing import Generator

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count
        self._limit = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        for item in data:
            item.setdefault("id", "test-uuid-123")
            item["created_at"] = datetime.utcnow().isoformat() + "Z"
        self._data = data
        return self

    def update(self, data):
        # Simulate update - merge with existing data
        updated_data = []
        for item in self._data:
            merged = {**item, **data}
            merged["updated_at"] = datetime.utcnow().isoformat() + "Z"
            updated_data.append(merged)
        self._data = updated_data if updated_data else [data]
        return self

    def eq(self, column, value):
        self._data = [row for row in self._data if column not in row or row[column] == value]
        return self

    def in_(self, column, values):
        self._data = [row for row in self._data if row.get(column) in values]
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        data = self._data if self._limit is None else self._data[: self._limit]
        return MockSupabaseResponse(
            data=data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._data.copy(), self._count)

    def insert(self, data):
        query = MockSupabaseQuery(self._data.copy(), self._count)
        return query.insert(data)

    def update(self, data):
        # For update, pass the existing data so it can be merged
        query = MockSupabaseQuery(self._data.copy(), self._count)
        return query.update(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseTable(config["data"], config["count"])


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "name": "Cola", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def reset_singletons() -> Generator:
    """Drop cached service instances so each test builds fresh ones."""
    import services.product_service as product_module
    import services.route_service as route_module
    import services.stock_counter_service as counter_module
    import services.stock_load_service as stock_load_module
    import services.sales_service as sales_module
    import services.reconciliation_service as reconciliation_module
    import services.summary_service as summary_module

    modules = [
        (product_module, "_product_service"),
        (route_module, "_route_service"),
        (counter_module, "_stock_counter_service"),
        (stock_load_module, "_stock_load_service"),
        (sales_module, "_sales_service"),
        (reconciliation_module, "_reconciliation_service"),
        (summary_module, "_summary_service"),
    ]
    for module, attr in modules:
        setattr(module, attr, None)
    yield
    for module, attr in modules:
        setattr(module, attr, None)


@pytest.fixture
def mock_db(mock_supabase, reset_singletons) -> Generator:
    """
    Patch the database client with mock in every service.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any service built afterwards gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase), \
            patch("services.product_service.get_supabase_client", return_value=mock_supabase), \
            patch("services.route_service.get_supabase_client", return_value=mock_supabase), \
            patch("services.stock_load_service.get_supabase_client", return_value=mock_supabase), \
            patch("services.sales_service.get_supabase_client", return_value=mock_supabase), \
            patch("services.stock_counter_service.get_supabase_client", return_value=mock_supabase), \
            patch("services.stock_counter_service.get_admin_client", return_value=None):
        yield mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("routes", [...])
            response = test_client_with_mock_db.get("/api/routes")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
