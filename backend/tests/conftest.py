"""
Shared test fixtures for the converter backend test suite.
"""

from collections.abc import Awaitable, Callable, Iterator

import pytest
import structlog
from fastapi.testclient import TestClient

from app.models.account import Principal
from app.models.conversion import ConvertedFile, FormatKey
from app.models.subscription import Catalog
from app.services.catalog import load_catalog
from app.services.format_registry import output_filename


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin environment so Settings never picks up a developer's .env values."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SECRET_KEY", "")
    monkeypatch.setenv("CATALOG_PATH", "")
    monkeypatch.setenv("CONVERSION__SIMULATED_DELAY_SECONDS", "0")


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


class FakeConverter:
    """Conversion collaborator double: records calls, optionally fails or pauses."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, FormatKey, FormatKey]] = []
        self.error: Exception | None = None
        self.before_return: Callable[[], Awaitable[None]] | None = None

    async def convert(
        self,
        content: bytes,
        filename: str,
        source: FormatKey,
        target: FormatKey,
    ) -> ConvertedFile:
        self.calls.append((filename, source, target))
        if self.before_return is not None:
            await self.before_return()
        if self.error is not None:
            raise self.error
        return ConvertedFile(
            filename=output_filename(filename, target),
            format=target,
            content=b"converted:" + content,
        )


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Minimal stand-in for the postgrest query builder used by the stores."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self._op = "select"
        self._payload: dict | None = None
        self._filters: list[tuple[str, object]] = []
        self._limit: int | None = None
        self._order: tuple[str, bool] | None = None
        self._on_conflict = ""
        self._ignore_duplicates = False

    def select(self, *_columns):
        self._op = "select"
        return self

    def eq(self, column: str, value):
        self._filters.append((column, value))
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    def order(self, column: str, desc: bool = False):
        self._order = (column, desc)
        return self

    def insert(self, payload: dict):
        self._op = "insert"
        self._payload = payload
        return self

    def upsert(self, payload: dict, on_conflict: str = "", ignore_duplicates: bool = False):
        self._op = "upsert"
        self._payload = payload
        self._on_conflict = on_conflict
        self._ignore_duplicates = ignore_duplicates
        return self

    async def execute(self) -> FakeResponse:
        if self.table in self.client.failing_tables:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.client.tables.setdefault(self.table, [])

        if self._op == "insert":
            rows.append(dict(self._payload))
            return FakeResponse([dict(self._payload)])

        if self._op == "upsert":
            key = self._on_conflict
            existing = next((r for r in rows if r.get(key) == self._payload.get(key)), None)
            if existing is not None:
                if self._ignore_duplicates:
                    return FakeResponse([])
                existing.update(self._payload)
                return FakeResponse([dict(existing)])
            rows.append(dict(self._payload))
            return FakeResponse([dict(self._payload)])

        result = [r for r in rows if all(r.get(c) == v for c, v in self._filters)]
        if self._order:
            column, desc = self._order
            result.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self._limit is not None:
            result = result[: self._limit]
        return FakeResponse([dict(r) for r in result])


class FakeRpc:
    def __init__(self, client: "FakeSupabaseClient", name: str, params: dict):
        self.client = client
        self.name = name
        self.params = params

    async def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.name, self.params))
        if self.name in self.client.failing_rpcs:
            raise RuntimeError(f"{self.name} failed")
        for row in self.client.tables.get("profiles", []):
            if row["id"] == self.params["user_id"]:
                row["conversion_count"] = (row.get("conversion_count") or 0) + 1
                return FakeResponse(row["conversion_count"])
        return FakeResponse(None)


class FakeSupabaseClient:
    """In-memory double of the async Supabase client (tables + rpc)."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.rpc_calls: list[tuple[str, dict]] = []
        self.failing_tables: set[str] = set()
        self.failing_rpcs: set[str] = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict) -> FakeRpc:
        return FakeRpc(self, name, params)


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def fake_supabase() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def catalog() -> Catalog:
    return load_catalog()


@pytest.fixture
def principal() -> Principal:
    """An authenticated, non-premium user."""
    return Principal(id="user-1", email="user@example.com", is_authenticated=True)


@pytest.fixture
def anonymous() -> Principal:
    return Principal.anonymous()


@pytest.fixture
def client(fake_converter: FakeConverter) -> Iterator[TestClient]:
    """FastAPI TestClient with in-memory services and a fake converter."""
    # Clear the lru_cache so settings pick up test env vars
    from app.config import get_settings

    get_settings.cache_clear()

    from app.main import app, install_services

    install_services(app, get_settings(), converter=fake_converter)
    app.state.supabase = None

    yield TestClient(app)

    app.dependency_overrides.clear()
