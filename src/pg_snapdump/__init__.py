"""pg-snapdump: consistent, concurrent PostgreSQL dumps.

Every table is read through its own connection, and every connection
imports the same exported snapshot, so the dump reflects one point in
time even though tables are scripted in parallel.

Usage:
    from pg_snapdump import SnapshotCoordinator, StreamSink, dump_database
    from pg_snapdump import DumpSettings, OnTableError, DataFormat
    from pg_snapdump import create_coordinator, load_dump_config
"""

from pg_snapdump.version import __version__

# Adapters
from pg_snapdump.adapters.base import DumpSink, SnapshotSource
from pg_snapdump.adapters.sink import StreamSink
from pg_snapdump.adapters.snapshot import SnapshotCoordinator

# Schema
from pg_snapdump.schema.catalog import CatalogReader
from pg_snapdump.schema.models import TableFilter, TableRef

# Dump
from pg_snapdump.dump.dispatcher import TableDumpDispatcher
from pg_snapdump.dump.engine import dump_database, dump_to_csv
from pg_snapdump.dump.models import (
    DataFormat,
    DumpInfo,
    DumpJob,
    DumpResult,
    DumpSettings,
    OnTableError,
)

# Config
from pg_snapdump.config.loader import load_dump_config
from pg_snapdump.config.models import DatabaseProfile, DumpConfig

# Factory
from pg_snapdump.factory import ProfileNotFoundError, create_coordinator, resolve_url

# Errors
from pg_snapdump.errors import (
    CatalogError,
    DumpConnectionError,
    DumpError,
    DumpFailedError,
    RenderError,
    SinkWriteError,
)

__all__ = [
    "__version__",
    # Adapters
    "DumpSink",
    "SnapshotSource",
    "StreamSink",
    "SnapshotCoordinator",
    # Schema
    "CatalogReader",
    "TableFilter",
    "TableRef",
    # Dump
    "TableDumpDispatcher",
    "dump_database",
    "dump_to_csv",
    "DataFormat",
    "DumpInfo",
    "DumpJob",
    "DumpResult",
    "DumpSettings",
    "OnTableError",
    # Config
    "load_dump_config",
    "DatabaseProfile",
    "DumpConfig",
    # Factory
    "create_coordinator",
    "resolve_url",
    "ProfileNotFoundError",
    # Errors
    "DumpError",
    "DumpConnectionError",
    "CatalogError",
    "RenderError",
    "SinkWriteError",
    "DumpFailedError",
]
