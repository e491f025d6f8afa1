"""Error taxonomy for dump runs.

``DumpConnectionError`` and ``SinkWriteError`` are always fatal to a run.
``CatalogError`` and ``RenderError`` are scoped to a single table and are
either recorded (``OnTableError.CONTINUE``) or escalated into a
``DumpFailedError`` (``OnTableError.ABORT``).

Usage:
    from pg_snapdump.errors import DumpError, CatalogError

    try:
        result = await dump_database(coordinator, sink, settings)
    except DumpError as e:
        console.print(f"[red]{e}[/red]")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pg_snapdump.dump.models import DumpJob
    from pg_snapdump.schema.models import TableRef


class DumpError(Exception):
    """Base class for every error raised by a dump run."""


class DumpConnectionError(DumpError, ConnectionError):
    """Snapshot or worker connection could not be opened, or was lost."""


class SinkWriteError(DumpError, OSError):
    """Writing to the output sink (or a CSV file) failed."""


class TableError(DumpError):
    """An error scoped to one table's dump job.

    Attributes:
        table: The table whose job failed, or None for catalog-wide
            queries such as the table listing.
        cause: The underlying exception.
    """

    kind = "table"

    def __init__(self, table: TableRef | None, cause: BaseException) -> None:
        self.table = table
        self.cause = cause
        where = table.qualified_name if table is not None else "catalog"
        super().__init__(f"{self.kind} error on {where}: {cause}")


class CatalogError(TableError):
    """A metadata or data query failed for a table."""

    kind = "catalog"


class RenderError(TableError):
    """Catalog data for a table was malformed and could not be rendered."""

    kind = "render"


class DumpFailedError(DumpError):
    """Run aborted because at least one table job failed.

    Attributes:
        failures: Failed jobs, in the order they were observed.
    """

    def __init__(self, failures: list[DumpJob]) -> None:
        self.failures = failures
        first = failures[0]
        message = (
            f"dump aborted: {len(failures)} table(s) failed, "
            f"first {first.table.qualified_name}: {first.err}"
        )
        super().__init__(message)
        if first.err is not None:
            self.__cause__ = first.err
