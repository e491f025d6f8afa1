"""PostgreSQL catalog reader via information_schema and pg_catalog.

This module queries the live catalog, through a snapshot-bound
connection, for everything needed to script one table:
- Tables (ordinary and partitioned) in a schema
- Columns, data types, maximum lengths, in ordinal order
- Sequences owning a column default of the table
- The primary key constraint
- Row data, every value cast to text

Uses psycopg (v3) async connections.  Query failures surface as
``CatalogError``; a lost connection surfaces as ``DumpConnectionError``;
catalog rows that fail model validation surface as ``RenderError``.
"""

from typing import Any

import psycopg
from psycopg import AsyncConnection, sql
from pydantic import BaseModel, ValidationError

from pg_snapdump.errors import CatalogError, DumpConnectionError, RenderError
from pg_snapdump.schema.models import (
    ColumnDef,
    PrimaryKeyDef,
    RowRecord,
    SequenceDef,
    TableFilter,
    TableRef,
)

DEFAULT_BATCH_SIZE = 1000

TABLES_QUERY = """
    SELECT n.nspname, c.relname
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND n.nspname = %s
    ORDER BY c.relname
"""

COLUMNS_QUERY = """
    SELECT
        column_name,
        CASE
            WHEN data_type = 'USER-DEFINED' THEN udt_schema || '.' || udt_name
            WHEN data_type = 'ARRAY' THEN ltrim(udt_name, '_') || '[]'
            ELSE data_type
        END AS data_type,
        character_maximum_length
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
    ORDER BY ordinal_position
"""

SEQUENCES_QUERY = """
    SELECT
        sn.nspname,
        s.relname,
        sq.seqincrement,
        sq.seqmin,
        sq.seqmax,
        sq.seqstart,
        sq.seqcache,
        sq.seqcycle,
        t.relname AS owner_table,
        a.attname AS owner_column,
        ps.last_value
    FROM pg_catalog.pg_class s
    JOIN pg_catalog.pg_namespace sn ON sn.oid = s.relnamespace
    JOIN pg_catalog.pg_sequence sq ON sq.seqrelid = s.oid
    JOIN pg_catalog.pg_depend d
        ON d.objid = s.oid
        AND d.classid = 'pg_catalog.pg_class'::regclass
        AND d.refclassid = 'pg_catalog.pg_class'::regclass
        AND d.deptype = 'a'
    JOIN pg_catalog.pg_class t ON t.oid = d.refobjid
    JOIN pg_catalog.pg_namespace tn ON tn.oid = t.relnamespace
    JOIN pg_catalog.pg_attribute a
        ON a.attrelid = t.oid
        AND a.attnum = d.refobjsubid
    LEFT JOIN pg_catalog.pg_sequences ps
        ON ps.schemaname = sn.nspname
        AND ps.sequencename = s.relname
    WHERE s.relkind = 'S'
      AND tn.nspname = %s
      AND t.relname = %s
    ORDER BY s.relname
"""

PRIMARY_KEY_QUERY = """
    SELECT con.conname, pg_catalog.pg_get_constraintdef(con.oid)
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class rel ON rel.oid = con.conrelid
    JOIN pg_catalog.pg_namespace nsp ON nsp.oid = rel.relnamespace
    WHERE con.contype = 'p'
      AND nsp.nspname = %s
      AND rel.relname = %s
"""

ROWS_CURSOR = "snapdump_rows"


class CatalogReader:
    """Reads table metadata and data through one snapshot-bound connection.

    A reader holds no state beyond its connection; create one per
    connection (per worker session).

    Usage:
        async with coordinator.session() as conn:
            reader = CatalogReader(conn)
            columns = await reader.columns_of(table)
            rows = await reader.fetch_rows(table, columns)
    """

    def __init__(self, conn: AsyncConnection, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        """Initialize with an open connection.

        Args:
            conn: psycopg async connection inside the snapshot transaction.
            batch_size: Rows fetched per round trip by ``fetch_rows``.
        """
        self._conn = conn
        self._batch_size = batch_size

    async def server_version(self) -> str:
        """Return the server's full version string (``SELECT version()``)."""
        rows = await self._fetch_all(None, "SELECT version()")
        return rows[0][0] if rows else "unknown"

    async def list_tables(self, table_filter: TableFilter | None = None) -> list[TableRef]:
        """List tables matching the filter, ordered by name.

        Args:
            table_filter: Schema/prefix/suffix predicate.  Defaults to every
                table in the ``public`` schema.

        Returns:
            Matching tables.
        """
        table_filter = table_filter or TableFilter()
        rows = await self._fetch_all(None, TABLES_QUERY, (table_filter.schema_name,))
        tables = [TableRef(schema_name=schema, name=name) for schema, name in rows]
        return [t for t in tables if table_filter.matches(t)]

    async def columns_of(self, table: TableRef) -> list[ColumnDef]:
        """Get columns for a table, in ordinal order."""
        rows = await self._fetch_all(
            table, COLUMNS_QUERY, (table.schema_name, table.name)
        )
        return [
            self._build(
                table,
                ColumnDef,
                name=name,
                data_type=data_type,
                max_length=max_length,
            )
            for name, data_type, max_length in rows
        ]

    async def sequences_of(self, table: TableRef) -> list[SequenceDef]:
        """Get sequences owning a column default of the table."""
        rows = await self._fetch_all(
            table, SEQUENCES_QUERY, (table.schema_name, table.name)
        )
        sequences = []
        for row in rows:
            (
                schema_name,
                name,
                increment_by,
                min_value,
                max_value,
                start_value,
                cache_size,
                cycles,
                owner_table,
                owner_column,
                last_value,
            ) = row
            sequences.append(
                self._build(
                    table,
                    SequenceDef,
                    schema_name=schema_name,
                    name=name,
                    increment_by=increment_by,
                    min_value=min_value,
                    max_value=max_value,
                    start_value=start_value,
                    cache_size=cache_size,
                    cycles=cycles,
                    owner_table=owner_table,
                    owner_column=owner_column,
                    last_value=last_value,
                )
            )
        return sequences

    async def primary_key_of(self, table: TableRef) -> PrimaryKeyDef | None:
        """Get the table's primary key, or None if it has none."""
        rows = await self._fetch_all(
            table, PRIMARY_KEY_QUERY, (table.schema_name, table.name)
        )
        if not rows:
            return None
        name, definition = rows[0]
        return self._build(table, PrimaryKeyDef, constraint_name=name, definition=definition)

    async def fetch_rows(self, table: TableRef, columns: list[ColumnDef]) -> list[RowRecord]:
        """Fetch every row of the table with each value cast to text.

        Uses a server-side cursor so rows arrive in ``batch_size`` chunks.

        Args:
            table: Table to read.
            columns: The table's columns, in the order values should appear.

        Returns:
            One tuple per row; NULL values are ``None``.
        """
        target = sql.Identifier(table.schema_name, table.name)
        if columns:
            query = sql.SQL("SELECT {columns} FROM {table}").format(
                columns=sql.SQL(", ").join(
                    sql.SQL("{}::text").format(sql.Identifier(col.name)) for col in columns
                ),
                table=target,
            )
        else:
            query = sql.SQL("SELECT FROM {table}").format(table=target)

        rows: list[RowRecord] = []
        try:
            async with self._conn.cursor(name=ROWS_CURSOR) as cur:
                await cur.execute(query)
                while batch := await cur.fetchmany(self._batch_size):
                    rows.extend(tuple(row) for row in batch)
        except psycopg.OperationalError as e:
            raise DumpConnectionError(
                f"Connection lost while reading {table.qualified_name}: {e}"
            ) from e
        except psycopg.Error as e:
            raise CatalogError(table, e) from e
        return rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_all(
        self,
        table: TableRef | None,
        query: str,
        params: tuple[Any, ...] | None = None,
    ) -> list[tuple]:
        """Run a metadata query and return every row.

        ``table`` is None for queries not scoped to one table.
        """
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.OperationalError as e:
            where = table.qualified_name if table else "catalog"
            raise DumpConnectionError(f"Connection lost while reading {where}: {e}") from e
        except psycopg.Error as e:
            raise CatalogError(table, e) from e

    def _build(self, table: TableRef, model: type[BaseModel], **fields: Any) -> Any:
        try:
            return model(**fields)
        except ValidationError as e:
            raise RenderError(table, e) from e
