"""Consistent-read snapshot coordination for PostgreSQL.

Provides ``SnapshotCoordinator``, which opens one read-only,
repeatable-read transaction per dump run and hands out worker
connections that import the same snapshot.  Every catalog and data query
of a run, on whichever connection, therefore sees the same point in time.

PostgreSQL cannot run concurrent statements on one connection, so workers
never share the primary connection.  Instead the primary transaction
exports its snapshot (``pg_export_snapshot()``) and each worker starts its
own transaction with ``SET TRANSACTION SNAPSHOT``.  The primary
transaction stays open until ``end()``.

Usage:
    from pg_snapdump.adapters.snapshot import SnapshotCoordinator

    async with SnapshotCoordinator("postgresql://localhost/mydb") as coordinator:
        tables = await CatalogReader(coordinator.connection).list_tables()
        async with coordinator.session() as conn:
            rows = await CatalogReader(conn).fetch_rows(tables[0], columns)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import psycopg
from psycopg import AsyncConnection, sql

from pg_snapdump.errors import DumpConnectionError

logger = logging.getLogger(__name__)

BEGIN_SNAPSHOT = "BEGIN ISOLATION LEVEL REPEATABLE READ, READ ONLY"
EXPORT_SNAPSHOT = "SELECT pg_catalog.pg_export_snapshot()"


def normalize_url(database_url: str, connect_timeout: int = 10) -> str:
    """Normalize a connection string for psycopg.

    Strips SQLAlchemy driver suffixes (``postgresql+asyncpg://``) and
    appends ``connect_timeout`` if not already present.  Both URL and
    ``key=value`` conninfo forms are accepted.

    Args:
        database_url: PostgreSQL URL or conninfo string.
        connect_timeout: Seconds to wait for a connection.

    Returns:
        A conninfo string libpq accepts.

    Example:
        >>> normalize_url("postgresql+asyncpg://u@h/db")
        'postgresql://u@h/db?connect_timeout=10'
        >>> normalize_url("host=localhost dbname=db", connect_timeout=3)
        'host=localhost dbname=db connect_timeout=3'
    """
    url = database_url
    if url.startswith("postgresql+") and "://" in url:
        url = "postgresql://" + url.split("://", 1)[1]

    if "connect_timeout" in url:
        return url
    if "://" in url:
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}connect_timeout={connect_timeout}"
    return f"{url} connect_timeout={connect_timeout}"


class SnapshotCoordinator:
    """One repeatable-read, read-only snapshot shared by every worker.

    The coordinator is an async context manager: entering calls
    ``begin()``, exiting always calls ``end()``, which rolls back and
    closes every connection regardless of how the run ended.  The
    transactions are read-only and are never committed.

    Worker connections are created lazily by ``session()`` and reused
    once returned, so a run never holds more worker connections than its
    peak concurrency.  A connection whose session raised is discarded,
    since its transaction may be aborted.

    Args:
        database_url: PostgreSQL URL or conninfo string.
        connect_timeout: Seconds to wait for each connection.
    """

    def __init__(self, database_url: str, connect_timeout: int = 10) -> None:
        self._conninfo = normalize_url(database_url, connect_timeout)
        self._conn: AsyncConnection | None = None
        self._snapshot_id: str | None = None
        self._workers: list[AsyncConnection] = []
        self._idle: list[AsyncConnection] = []

    async def __aenter__(self) -> "SnapshotCoordinator":
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.end()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def connection(self) -> AsyncConnection:
        """The primary snapshot connection."""
        if self._conn is None:
            raise RuntimeError("Snapshot not open. Use async with statement.")
        return self._conn

    @property
    def snapshot_id(self) -> str:
        """Identifier of the exported snapshot."""
        if self._snapshot_id is None:
            raise RuntimeError("Snapshot not open. Use async with statement.")
        return self._snapshot_id

    async def begin(self) -> None:
        """Open the primary transaction and export its snapshot.

        Raises:
            DumpConnectionError: If the connection or transaction cannot
                be opened.
            RuntimeError: If the snapshot is already open.
        """
        if self._conn is not None:
            raise RuntimeError("Snapshot already open.")

        try:
            self._conn = await AsyncConnection.connect(self._conninfo, autocommit=True)
            await self._conn.execute(BEGIN_SNAPSHOT)
            cur = await self._conn.execute(EXPORT_SNAPSHOT)
            row = await cur.fetchone()
        except psycopg.Error as e:
            await self.end()
            raise DumpConnectionError(f"Failed to open snapshot: {e}") from e

        self._snapshot_id = row[0]
        logger.info("Opened snapshot %s", self._snapshot_id)

    async def end(self) -> None:
        """Roll back and close every connection.  Safe to call twice."""
        workers, self._workers, self._idle = self._workers, [], []
        for conn in workers:
            await self._release(conn)

        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._release(conn)
            logger.debug("Released snapshot %s", self._snapshot_id)
        self._snapshot_id = None

    # ------------------------------------------------------------------
    # Worker Sessions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncConnection]:
        """Borrow a worker connection bound to the shared snapshot.

        Raises:
            DumpConnectionError: If a new worker connection cannot be
                opened or cannot import the snapshot.
        """
        snapshot_id = self.snapshot_id
        if self._idle:
            conn = self._idle.pop()
        else:
            conn = await self._open_worker(snapshot_id)

        try:
            yield conn
        except BaseException:
            if conn in self._workers:
                self._workers.remove(conn)
            await self._release(conn)
            raise
        self._idle.append(conn)

    async def _open_worker(self, snapshot_id: str) -> AsyncConnection:
        conn: AsyncConnection | None = None
        try:
            conn = await AsyncConnection.connect(self._conninfo, autocommit=True)
            await conn.execute(BEGIN_SNAPSHOT)
            await conn.execute(
                sql.SQL("SET TRANSACTION SNAPSHOT {}").format(sql.Literal(snapshot_id))
            )
        except psycopg.Error as e:
            if conn is not None:
                await conn.close()
            raise DumpConnectionError(
                f"Failed to attach worker to snapshot {snapshot_id}: {e}"
            ) from e

        self._workers.append(conn)
        logger.debug("Attached worker connection %d to snapshot", len(self._workers))
        return conn

    async def _release(self, conn: AsyncConnection) -> None:
        try:
            if not conn.closed:
                await conn.execute("ROLLBACK")
        except psycopg.Error as e:
            # Connection already broken; closing is all that is left to do
            logger.debug("Rollback failed while releasing connection: %s", e)
        finally:
            await conn.close()
