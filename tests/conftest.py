"""In-memory fakes for dispatcher and engine tests.

``FakeSource`` stands in for ``SnapshotCoordinator`` and tracks how many
sessions are open at once.  ``FakeCatalog`` hands out readers that serve
a fixed set of two-column tables, with optional per-table delays,
table-scoped failures, and fatal connection losses.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest

from pg_snapdump.errors import CatalogError, DumpConnectionError
from pg_snapdump.schema.models import ColumnDef, TableFilter, TableRef

COLUMNS = [
    ColumnDef(name="id", data_type="integer"),
    ColumnDef(name="name", data_type="text"),
]


class FakeSource:
    """Snapshot source without a database."""

    def __init__(self, open_error: Exception | None = None) -> None:
        self.connection = "primary"
        self.open_error = open_error
        self.entered = False
        self.exited = False
        self.active = 0
        self.peak = 0
        self.sessions = 0

    async def __aenter__(self) -> "FakeSource":
        if self.open_error is not None:
            raise self.open_error
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.exited = True

    @asynccontextmanager
    async def session(self):
        self.active += 1
        self.sessions += 1
        self.peak = max(self.peak, self.active)
        try:
            yield f"worker-{self.sessions}"
        finally:
            self.active -= 1


class FakeCatalog:
    """Table data plus failure injection, shared by every reader."""

    def __init__(
        self,
        tables: dict[str, list[tuple[str | None, ...]]],
        *,
        failing: set[str] = frozenset(),
        fatal: set[str] = frozenset(),
        delays: dict[str, float] | None = None,
        version: str = "PostgreSQL 16.2",
    ) -> None:
        self.tables = tables
        self.failing = set(failing)
        self.fatal = set(fatal)
        self.delays = delays or {}
        self.version = version
        self.connections: list[object] = []

    def reader(self, conn, batch_size: int | None = None) -> "FakeReader":
        self.connections.append(conn)
        return FakeReader(self)


class FakeReader:
    """Duck-typed ``CatalogReader`` over a ``FakeCatalog``."""

    def __init__(self, catalog: FakeCatalog) -> None:
        self._catalog = catalog

    async def server_version(self) -> str:
        return self._catalog.version

    async def list_tables(self, table_filter: TableFilter | None = None) -> list[TableRef]:
        table_filter = table_filter or TableFilter()
        tables = [TableRef(name=name) for name in sorted(self._catalog.tables)]
        return [t for t in tables if table_filter.matches(t)]

    async def columns_of(self, table: TableRef) -> list[ColumnDef]:
        await asyncio.sleep(self._catalog.delays.get(table.name, 0))
        if table.name in self._catalog.fatal:
            raise DumpConnectionError(f"Connection lost while reading {table.qualified_name}")
        if table.name in self._catalog.failing:
            raise CatalogError(table, RuntimeError("permission denied"))
        return list(COLUMNS)

    async def sequences_of(self, table: TableRef) -> list:
        return []

    async def primary_key_of(self, table: TableRef) -> None:
        return None

    async def fetch_rows(self, table: TableRef, columns: list[ColumnDef]) -> list:
        return list(self._catalog.tables[table.name])


class ListSink:
    """DumpSink collecting writes in memory."""

    def __init__(self) -> None:
        self.chunks: list[str] = []

    def write(self, text: str) -> None:
        self.chunks.append(text)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


class BrokenSink:
    """DumpSink whose writes fail after ``ok_writes`` successful ones."""

    def __init__(self, ok_writes: int = 0) -> None:
        self.ok_writes = ok_writes
        self.chunks: list[str] = []

    def write(self, text: str) -> None:
        if len(self.chunks) >= self.ok_writes:
            raise OSError(28, "No space left on device")
        self.chunks.append(text)


# ----- Fixtures -----


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def make_catalog():
    return FakeCatalog


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def broken_sink():
    return BrokenSink


@pytest.fixture
def make_source():
    return FakeSource
