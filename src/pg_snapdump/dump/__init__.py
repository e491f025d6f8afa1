"""Dump rendering, dispatch, and assembly.

Usage:
    from pg_snapdump.dump import dump_database, dump_to_csv, DumpSettings
    from pg_snapdump.dump import render_copy_block, read_copy_block
"""

from pg_snapdump.dump.dispatcher import TableDumpDispatcher
from pg_snapdump.dump.engine import dump_database, dump_to_csv
from pg_snapdump.dump.models import (
    DataFormat,
    DispatchState,
    DumpInfo,
    DumpJob,
    DumpResult,
    DumpSettings,
    OnTableError,
)
from pg_snapdump.dump.render import (
    read_copy_block,
    render_copy_block,
    render_create_table,
    render_insert_statements,
    render_primary_key,
    render_sequence,
    render_table_body,
)

__all__ = [
    "dump_database",
    "dump_to_csv",
    "TableDumpDispatcher",
    "DataFormat",
    "DispatchState",
    "DumpInfo",
    "DumpJob",
    "DumpResult",
    "DumpSettings",
    "OnTableError",
    "render_create_table",
    "render_sequence",
    "render_primary_key",
    "render_copy_block",
    "read_copy_block",
    "render_insert_statements",
    "render_table_body",
]
