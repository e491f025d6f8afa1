"""Snapshot connections and output sinks.

Usage:
    from pg_snapdump.adapters import SnapshotCoordinator, StreamSink
"""

from pg_snapdump.adapters.base import DumpSink, SnapshotSource
from pg_snapdump.adapters.sink import StreamSink
from pg_snapdump.adapters.snapshot import SnapshotCoordinator

__all__ = [
    "DumpSink",
    "SnapshotSource",
    "StreamSink",
    "SnapshotCoordinator",
]
