"""Catalog introspection for dumps.

Usage:
    from pg_snapdump.schema import CatalogReader, TableFilter, TableRef
"""

from pg_snapdump.schema.catalog import CatalogReader
from pg_snapdump.schema.models import (
    ColumnDef,
    PrimaryKeyDef,
    RowRecord,
    SequenceDef,
    TableFilter,
    TableRef,
)

__all__ = [
    "CatalogReader",
    "TableRef",
    "TableFilter",
    "ColumnDef",
    "SequenceDef",
    "PrimaryKeyDef",
    "RowRecord",
]
