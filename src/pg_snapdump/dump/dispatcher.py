"""Bounded-parallelism dispatch of per-table dump jobs.

Tables are split into groups of at most ``parallelism``.  Each group runs
one asyncio task per table, every task on its own snapshot-bound
connection, and the whole group drains before the next one starts.  Peak
concurrency is therefore exactly the parallelism limit.

Completed jobs are handed to ``emit`` under a single lock, one job at a
time, in completion order.  Output table order is consequently not
deterministic unless ``parallelism == 1``.

Usage:
    dispatcher = TableDumpDispatcher(coordinator, parallelism=8)
    jobs = await dispatcher.run(script_table, emit=lambda job: sink.write(job.rendered_body))
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

from pg_snapdump.adapters.base import SnapshotSource
from pg_snapdump.dump.models import (
    DispatchState,
    DumpJob,
    OnTableError,
    resolve_parallelism,
)
from pg_snapdump.errors import CatalogError, DumpFailedError, RenderError
from pg_snapdump.schema.catalog import CatalogReader
from pg_snapdump.schema.models import TableFilter, TableRef

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (reader, table) -> rendered output for that table
JobFunc = Callable[[CatalogReader, TableRef], Awaitable[str]]
# May return an awaitable, which is awaited before the lock is released
EmitFunc = Callable[[DumpJob], Awaitable[None] | None]


def chunked(items: Sequence[T], size: int) -> list[Sequence[T]]:
    """Split items into consecutive groups of at most ``size``.

    Example:
        >>> chunked(["a", "b", "c"], 2)
        [['a', 'b'], ['c']]
    """
    return [items[i : i + size] for i in range(0, len(items), size)]


class TableDumpDispatcher:
    """Fans table jobs out across snapshot sessions, group by group.

    Args:
        source: Provider of the primary connection and worker sessions.
        parallelism: Maximum concurrent jobs.  Unset or non-positive
            resolves to 50.
        on_table_error: ``CONTINUE`` records failed tables and keeps
            going; ``ABORT`` stops after the group containing the failure
            and raises ``DumpFailedError``.
        table_filter: Schema/prefix/suffix predicate used at listing.
        ignore_tables: Table names excluded at listing.
        reader_factory: Builds a reader for a connection.  Defaults to
            ``CatalogReader``.
    """

    def __init__(
        self,
        source: SnapshotSource,
        *,
        parallelism: int | None = None,
        on_table_error: OnTableError = OnTableError.CONTINUE,
        table_filter: TableFilter | None = None,
        ignore_tables: Iterable[str] = (),
        reader_factory: Callable[[Any], CatalogReader] = CatalogReader,
    ) -> None:
        self._source = source
        self.parallelism = resolve_parallelism(parallelism)
        self.on_table_error = on_table_error
        self.table_filter = table_filter or TableFilter()
        self.ignore_tables = frozenset(ignore_tables)
        self._reader_factory = reader_factory
        self._lock = asyncio.Lock()
        self.state = DispatchState.IDLE

    async def list_tables(self) -> list[TableRef]:
        """List filtered tables on the primary connection, minus ignored names."""
        self.state = DispatchState.LISTING
        reader = self._reader_factory(self._source.connection)
        tables = await reader.list_tables(self.table_filter)
        selected = [t for t in tables if t.name not in self.ignore_tables]
        logger.info(
            "Listed %d table(s) in schema %s (%d ignored)",
            len(selected),
            self.table_filter.schema_name,
            len(tables) - len(selected),
        )
        return selected

    async def run(
        self,
        job: JobFunc,
        emit: EmitFunc,
        tables: Sequence[TableRef] | None = None,
    ) -> list[DumpJob]:
        """Run ``job`` for every table and emit successful results.

        Args:
            job: Coroutine producing one table's output from a reader.
            emit: Called under the output lock for each successful job.
                A returned awaitable is awaited while the lock is held.
            tables: Tables to dump.  Listed from the catalog when None.

        Returns:
            Every finished job, successful or failed, in completion order.

        Raises:
            DumpFailedError: Under ``ABORT``, once the group containing a
                failed table has drained.
            DumpConnectionError: If a session is lost; fatal.
            SinkWriteError: If ``emit`` fails; fatal.
        """
        if tables is None:
            tables = await self.list_tables()

        completed: list[DumpJob] = []
        try:
            for index, group in enumerate(chunked(tables, self.parallelism)):
                self.state = DispatchState.DISPATCHING
                logger.debug("Dispatching group %d (%d table(s))", index, len(group))
                tasks = [
                    asyncio.create_task(self._run_job(table, job, emit, completed))
                    for table in group
                ]

                self.state = DispatchState.DRAINING
                outcomes = await asyncio.gather(*tasks, return_exceptions=True)

                fatal = next((o for o in outcomes if isinstance(o, BaseException)), None)
                if fatal is not None:
                    raise fatal

                failures = [j for j in outcomes if not j.ok]
                for failed in failures:
                    logger.warning("Table %s failed: %s", failed.table.qualified_name, failed.err)
                if failures and self.on_table_error == OnTableError.ABORT:
                    raise DumpFailedError([j for j in completed if not j.ok])
        except BaseException:
            self.state = DispatchState.ABORTED
            raise

        self.state = DispatchState.DONE
        return completed

    async def _run_job(
        self,
        table: TableRef,
        job: JobFunc,
        emit: EmitFunc,
        completed: list[DumpJob],
    ) -> DumpJob:
        """Run one table's job on its own session; table errors are captured."""
        dump_job = DumpJob(table=table)
        try:
            async with self._source.session() as conn:
                dump_job.rendered_body = await job(self._reader_factory(conn), table)
        except (CatalogError, RenderError) as e:
            dump_job.err = e

        async with self._lock:
            if dump_job.ok:
                emitted = emit(dump_job)
                if inspect.isawaitable(emitted):
                    await emitted
                logger.debug("Dumped %s", table.qualified_name)
            completed.append(dump_job)
        return dump_job
