"""
Shared test fixtures.

The Supabase fake keeps rows per table and applies filters, ordering
and paging, so services can be exercised end to end without a database.
"""

import os
import sys
import threading
from contextlib import ExitStack
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Required settings must exist before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("EXCHANGE_RATE_API_KEY", "test-fx-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator, Optional
from uuid import uuid4


# ===================
# FAKE SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: Optional[int] = None):
        self.data = data if data is not None else []
        self.count = count


def _sort_key(value):
    # None sorts last, like Postgres ascending order
    return (value is None, value if value is not None else 0)


class MockSupabaseQuery:
    """Chainable query builder over a MockSupabaseClient's rows."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters = []
        self._orders = []
        self._range = None
        self._limit = None
        self._single = False
        self._count = None

    def select(self, *columns, count: Optional[str] = None):
        self._op = "select"
        self._count = count
        return self

    def insert(self, data):
        self._op = "insert"
        self._payload = data
        return self

    def update(self, data: dict):
        self._op = "update"
        self._payload = data
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def contains(self, column, values):
        self._filters.append(lambda row: all(v in (row.get(column) or []) for v in values))
        return self

    def order(self, column, desc: bool = False):
        self._orders.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self._range = (start, end)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def single(self):
        self._single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> MockSupabaseResponse:
        client = self._client
        with client.lock:
            client.raise_if_failing(self._table, self._op)
            rows = client.rows(self._table)

            if self._op == "insert":
                payload = self._payload if isinstance(self._payload, list) else [self._payload]
                created = []
                for item in payload:
                    row = dict(item)
                    row.setdefault("id", str(uuid4()))
                    row.setdefault("created_at", client.next_timestamp())
                    created.append(row)
                rows.extend(created)
                return MockSupabaseResponse([dict(r) for r in created])

            if self._op == "update":
                updated = []
                for row in rows:
                    if self._matches(row):
                        row.update(self._payload)
                        updated.append(dict(row))
                return MockSupabaseResponse(updated)

            matched = [dict(row) for row in rows if self._matches(row)]
            for column, desc in reversed(self._orders):
                matched.sort(key=lambda r, c=column: _sort_key(r.get(c)), reverse=desc)
            total = len(matched)

            if self._range is not None:
                start, end = self._range
                matched = matched[start:end + 1]
            if self._limit is not None:
                matched = matched[:self._limit]

            count = total if self._count else None
            if self._single:
                return MockSupabaseResponse(matched[0] if matched else None, count)
            return MockSupabaseResponse(matched, count)


class MockSupabaseTable:
    """Entry point for queries on one table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *columns, **kwargs):
        return MockSupabaseQuery(self._client, self._name).select(*columns, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name).insert(data)

    def update(self, data: dict):
        return MockSupabaseQuery(self._client, self._name).update(data)


class MockSupabaseClient:
    """
    Stateful in-memory Supabase client.

    Rows inserted through services are visible to later queries.
    """

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._failures: set[tuple[str, str]] = set()
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.lock = threading.RLock()

    def set_table_data(self, table_name: str, data: list):
        """Seed rows for a table."""
        with self.lock:
            self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        return self._tables.setdefault(table_name, [])

    def fail_on(self, table_name: str, op: str):
        """Make every `op` ("select", "insert", "update") on a table raise."""
        self._failures.add((table_name, op))

    def raise_if_failing(self, table_name: str, op: str):
        if (table_name, op) in self._failures:
            raise ConnectionError(f"simulated {op} failure on {table_name}")

    def next_timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)


# ===================
# FIXTURES
# ===================

DB_MODULES = (
    "config.database",
    "services.rfq_service",
    "services.quote_service",
    "services.allocation_ledger_service",
)

SINGLETONS = (
    ("services.rfq_service", "_rfq_service"),
    ("services.quote_service", "_quote_service"),
    ("services.allocation_ledger_service", "_ledger_service"),
    ("services.recommendation_service", "_recommendation_service"),
    ("services.finalization_service", "_finalization_service"),
)


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an empty fake Supabase client.

    Usage:
        def test_something(mock_db):
            mock_db.set_table_data("rfqs", [RFQFactory.create()])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch every service's database client with the fake.

    Service singletons are reset so they pick up the fake client.
    """
    with ExitStack() as stack:
        for module in DB_MODULES:
            stack.enter_context(
                patch(f"{module}.get_supabase_client", return_value=mock_supabase)
            )
        for module, attr in SINGLETONS:
            stack.enter_context(patch(f"{module}.{attr}", None))
        yield mock_supabase


@pytest.fixture
def fx_rate() -> Generator:
    """
    Fixed USD->INR rate for quote pricing.

    Yields the mock so tests can change return_value or side_effect.
    """
    with patch("services.quote_service.resolve_fx_rate", return_value=Decimal("83")) as mock_rate:
        yield mock_rate


@pytest.fixture(autouse=True)
def telegram_disabled():
    """Keep tests off the network unless a test configures Telegram itself."""
    from config import settings

    with patch.object(settings, "telegram_bot_token", None):
        with patch.object(settings, "telegram_chat_id", None):
            yield


@pytest.fixture(autouse=True)
def reset_fx_cache():
    """Forget any exchange rate remembered by a previous test."""
    from integrations.exchange_rate import reset_last_known_rate

    reset_last_known_rate()
    yield
    reset_last_known_rate()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with the fake database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_db):
            mock_db.set_table_data("rfqs", [...])
            response = test_client_with_mock_db.get("/api/rfqs")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
