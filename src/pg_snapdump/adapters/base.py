"""Protocol definitions for dump collaborators.

Defines the two seams the dump engine writes against:

- ``DumpSink``: where rendered text goes (file, stream, buffer).
- ``SnapshotSource``: where snapshot-bound connections come from.

Usage:
    from pg_snapdump.adapters.base import DumpSink, SnapshotSource

    async def run(source: SnapshotSource, sink: DumpSink) -> None:
        async with source.session() as conn:
            ...
        sink.write("-- done\\n")
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol


class DumpSink(Protocol):
    """Append-only text destination for a single-stream dump.

    The dispatcher guarantees one writer at a time, so implementations do
    not need their own locking.
    """

    def write(self, text: str) -> None:
        """Append text to the output.

        Args:
            text: Rendered text, written verbatim.

        Raises:
            OSError: If the underlying destination cannot be written.
        """
        ...


class SnapshotSource(Protocol):
    """Provider of connections that all observe one transaction snapshot.

    ``SnapshotCoordinator`` is the PostgreSQL implementation; tests use
    in-memory fakes with the same shape.  Entering the source opens the
    snapshot; exiting always releases it.
    """

    async def __aenter__(self) -> Any: ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Any: ...

    @property
    def connection(self) -> Any:
        """The primary snapshot connection (for listing and the header)."""
        ...

    def session(self) -> AbstractAsyncContextManager[Any]:
        """Borrow a connection bound to the shared snapshot.

        Example:
            async with source.session() as conn:
                reader = CatalogReader(conn)
                columns = await reader.columns_of(table)
        """
        ...
