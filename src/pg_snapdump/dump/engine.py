"""Dump entry points.

Two output modes share the same snapshot and dispatcher:

- ``dump_database``: header, table bodies and footer to one text sink.
- ``dump_to_csv``: one CSV file per table in a directory, no header or
  footer.

Usage:
    from pg_snapdump import SnapshotCoordinator, StreamSink, dump_database

    coordinator = SnapshotCoordinator("postgresql://localhost/mydb")
    with open("dump.sql", "w", encoding="utf-8") as f:
        result = await dump_database(coordinator, StreamSink(f), DumpSettings(parallelism=8))

    for job in result.failures:
        print(job.table.qualified_name, job.err)
"""

import asyncio
import csv
import logging
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Any

from pg_snapdump.adapters.base import DumpSink, SnapshotSource
from pg_snapdump.dump.assembler import (
    completion_timestamp,
    write_footer,
    write_header,
    write_text,
)
from pg_snapdump.dump.dispatcher import TableDumpDispatcher
from pg_snapdump.dump.models import (
    DataFormat,
    DumpInfo,
    DumpJob,
    DumpResult,
    DumpSettings,
)
from pg_snapdump.dump.render import render_csv_rows, render_table_body
from pg_snapdump.errors import SinkWriteError
from pg_snapdump.schema.catalog import CatalogReader
from pg_snapdump.schema.models import TableRef
from pg_snapdump.version import resolve_tool_version

logger = logging.getLogger(__name__)

ReaderFactory = Callable[[Any], CatalogReader]


# ============================================================================
# Per-table Jobs
# ============================================================================


async def script_table(
    reader: CatalogReader,
    table: TableRef,
    data_format: DataFormat = DataFormat.COPY,
) -> str:
    """Read one table's structure and data and render its dump body."""
    columns = await reader.columns_of(table)
    sequences = await reader.sequences_of(table)
    primary_key = await reader.primary_key_of(table)
    rows = await reader.fetch_rows(table, columns)
    return render_table_body(table, columns, sequences, primary_key, rows, data_format)


def csv_path(output_dir: Path, table: TableRef) -> Path:
    """``<table>.csv`` in the public schema, ``<schema>.<table>.csv`` elsewhere."""
    return output_dir / f"{table.display_name}.csv"


def _write_csv(path: Path, records: list[list[str]]) -> None:
    try:
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerows(records)
    except OSError as e:
        raise SinkWriteError(f"Failed to write {path}: {e}") from e


async def export_table_csv(reader: CatalogReader, table: TableRef, output_dir: Path) -> str:
    """Write one table's rows to its CSV file.

    Returns:
        The path written, as a string.
    """
    columns = await reader.columns_of(table)
    rows = await reader.fetch_rows(table, columns)
    path = csv_path(output_dir, table)
    await asyncio.to_thread(_write_csv, path, render_csv_rows(columns, rows))
    return str(path)


# ============================================================================
# Runs
# ============================================================================


def _build_dispatcher(
    source: SnapshotSource,
    settings: DumpSettings,
    reader_factory: ReaderFactory,
) -> TableDumpDispatcher:
    return TableDumpDispatcher(
        source,
        parallelism=settings.parallelism,
        on_table_error=settings.on_table_error,
        table_filter=settings.table_filter(),
        ignore_tables=settings.ignore_tables,
        reader_factory=reader_factory,
    )


def _result(info: DumpInfo, jobs: list[DumpJob], paths: list[str] | None = None) -> DumpResult:
    return DumpResult(
        info=info,
        dumped=[job.table for job in jobs if job.ok],
        failures=[job for job in jobs if not job.ok],
        paths=paths or [],
    )


async def dump_database(
    source: SnapshotSource,
    sink: DumpSink,
    settings: DumpSettings | None = None,
    *,
    version_source: Callable[[], str] | None = None,
    reader_factory: ReaderFactory | None = None,
) -> DumpResult:
    """Dump every selected table to one sink under a single snapshot.

    The snapshot is opened before anything is written, so a connection
    failure leaves the sink untouched.  The footer is written only after
    every job has drained.

    Args:
        source: Unopened snapshot source (usually ``SnapshotCoordinator``).
        sink: Destination for the script text.
        settings: Run options.  Defaults to ``DumpSettings()``.
        version_source: Optional callable returning the tool version for
            the header.  Failures fall back to the installed version.
        reader_factory: Builds a ``CatalogReader`` for a connection.

    Returns:
        DumpResult with the dumped tables and, under ``CONTINUE``, the
        failed jobs.

    Raises:
        DumpConnectionError: If the snapshot cannot be opened or is lost.
        SinkWriteError: If the sink cannot be written.
        DumpFailedError: If a table fails under ``ABORT``.
    """
    settings = settings or DumpSettings()
    reader_factory = reader_factory or partial(CatalogReader, batch_size=settings.batch_size)
    dispatcher = _build_dispatcher(source, settings, reader_factory)

    tool_version = await asyncio.to_thread(resolve_tool_version, version_source)
    info = DumpInfo(tool_version=tool_version, parallelism=dispatcher.parallelism)

    async with source:
        info.server_version = await reader_factory(source.connection).server_version()
        logger.info("Dumping from %s", info.server_version)
        write_header(sink, info)

        jobs = await dispatcher.run(
            partial(script_table, data_format=settings.data_format),
            # Body writes run off the event loop
            emit=lambda job: asyncio.to_thread(write_text, sink, job.rendered_body),
        )

        info.completion_timestamp = completion_timestamp()
        write_footer(sink, info)

    result = _result(info, jobs)
    logger.info(
        "Dump finished: %d table(s) dumped, %d failed",
        len(result.dumped),
        len(result.failures),
    )
    return result


async def dump_to_csv(
    source: SnapshotSource,
    output_dir: str | Path,
    settings: DumpSettings | None = None,
    *,
    reader_factory: ReaderFactory | None = None,
) -> DumpResult:
    """Export every selected table to its own CSV file under one snapshot.

    Each worker writes its own file; only the list of written paths is
    shared, appended under the dispatcher's lock.  ``data_format`` is
    ignored in this mode.

    Args:
        source: Unopened snapshot source.
        output_dir: Existing directory to write into.
        settings: Run options.  Defaults to ``DumpSettings()``.
        reader_factory: Builds a ``CatalogReader`` for a connection.

    Returns:
        DumpResult with ``paths`` set to the files written.

    Raises:
        DumpConnectionError: If the snapshot cannot be opened or is lost.
        SinkWriteError: If a CSV file cannot be written.
        DumpFailedError: If a table fails under ``ABORT``.
    """
    settings = settings or DumpSettings()
    reader_factory = reader_factory or partial(CatalogReader, batch_size=settings.batch_size)
    dispatcher = _build_dispatcher(source, settings, reader_factory)
    output_dir = Path(output_dir)

    info = DumpInfo(
        tool_version=await asyncio.to_thread(resolve_tool_version),
        parallelism=dispatcher.parallelism,
    )
    paths: list[str] = []

    async with source:
        info.server_version = await reader_factory(source.connection).server_version()
        jobs = await dispatcher.run(
            partial(export_table_csv, output_dir=output_dir),
            emit=lambda job: paths.append(job.rendered_body),
        )
        info.completion_timestamp = completion_timestamp()

    logger.info("Exported %d table(s) to %s", len(paths), output_dir)
    return _result(info, jobs, paths)
