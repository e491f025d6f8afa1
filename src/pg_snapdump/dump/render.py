"""Statement rendering for table dumps.

Pure functions that turn catalog models and data rows into restorable
text.  Nothing here performs I/O, so identical inputs always render to
byte-identical output.

Two escaping disciplines are kept strictly apart:

- COPY blocks use the bulk-loader text format: tab-separated fields,
  ``\\N`` for NULL, backslash escapes for control characters, no quoting.
- INSERT statements use SQL literals: single-quoted values with embedded
  quotes doubled, and the bare token ``NULL``.

Usage:
    from pg_snapdump.dump.render import render_copy_block, render_insert_statements

    block = render_copy_block(table, columns, rows)
"""

import re
from collections.abc import Sequence

from pg_snapdump.dump.models import DataFormat
from pg_snapdump.schema.models import (
    DEFAULT_SCHEMA,
    ColumnDef,
    PrimaryKeyDef,
    RowRecord,
    SequenceDef,
    TableRef,
)

COPY_NULL = "\\N"
COPY_TERMINATOR = "\\."
CSV_NULL = "NULL"

_COPY_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        "\b": "\\b",
        "\f": "\\f",
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
        "\v": "\\v",
    }
)
_COPY_UNESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_COPY_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

_SIMPLE_IDENT = re.compile(r"^[a-z_][a-z0-9_$]*$")

# Reserved words that cannot appear unquoted as a column or table name.
RESERVED_WORDS = frozenset(
    {
        "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
        "asymmetric", "both", "case", "cast", "check", "collate", "column",
        "constraint", "create", "current_catalog", "current_date",
        "current_role", "current_time", "current_timestamp", "current_user",
        "default", "deferrable", "desc", "distinct", "do", "else", "end",
        "except", "false", "fetch", "for", "foreign", "from", "grant",
        "group", "having", "in", "initially", "intersect", "into", "lateral",
        "leading", "limit", "localtime", "localtimestamp", "not", "null",
        "offset", "on", "only", "or", "order", "placing", "primary",
        "references", "returning", "select", "session_user", "some",
        "symmetric", "table", "then", "to", "trailing", "true", "union",
        "unique", "user", "using", "variadic", "when", "where", "window",
        "with",
    }
)


# ============================================================================
# Identifier and Literal Quoting
# ============================================================================


def quote_ident(name: str) -> str:
    """Double-quote an identifier unless it is a plain lower-case name.

    Example:
        >>> quote_ident("users")
        'users'
        >>> quote_ident("Users")
        '"Users"'
        >>> quote_ident("order")
        '"order"'
    """
    if _SIMPLE_IDENT.match(name) and name not in RESERVED_WORDS:
        return name
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote a SQL string literal, doubling embedded quotes.

    Example:
        >>> quote_literal("O'Brien")
        "'O''Brien'"
    """
    return "'" + value.replace("'", "''") + "'"


def table_ident(table: TableRef) -> str:
    """Table name as it appears in CREATE/COPY/INSERT statements.

    Tables in the default schema are left unqualified.
    """
    if table.schema_name == DEFAULT_SCHEMA:
        return quote_ident(table.name)
    return f"{quote_ident(table.schema_name)}.{quote_ident(table.name)}"


def qualified_ident(schema_name: str, name: str) -> str:
    """Always schema-qualified, quoted where needed."""
    return f"{quote_ident(schema_name)}.{quote_ident(name)}"


def _column_list(columns: Sequence[ColumnDef]) -> str:
    return ", ".join(quote_ident(col.name) for col in columns)


# ============================================================================
# Schema Statements
# ============================================================================


def render_create_table(table: TableRef, columns: Sequence[ColumnDef]) -> str:
    """Render a CREATE TABLE statement, one column per line, in input order."""
    if not columns:
        return f"CREATE TABLE {table_ident(table)} ();"

    column_lines = [f"    {quote_ident(col.name)} {col.type_clause}" for col in columns]
    body = ",\n".join(column_lines)
    return f"CREATE TABLE {table_ident(table)} (\n{body}\n);"


def render_sequence(seq: SequenceDef, owner_schema: str | None = None) -> str:
    """Render CREATE SEQUENCE plus ownership, column default and current value.

    Args:
        seq: Sequence definition from the catalog.
        owner_schema: Schema of the owning table.  Defaults to the
            sequence's own schema.

    Returns:
        One or more statements separated by newlines.  Ownership and
        default statements are emitted only when both ``owner_table`` and
        ``owner_column`` are known; ``setval`` only when ``last_value`` is.
    """
    seq_name = qualified_ident(seq.schema_name, seq.name)
    cycle = "CYCLE" if seq.cycles else "NO CYCLE"
    statements = [
        f"CREATE SEQUENCE {seq_name}\n"
        f"    INCREMENT BY {seq.increment_by}\n"
        f"    MINVALUE {seq.min_value}\n"
        f"    MAXVALUE {seq.max_value}\n"
        f"    START WITH {seq.start_value}\n"
        f"    CACHE {seq.cache_size}\n"
        f"    {cycle};"
    ]

    if seq.owner_table and seq.owner_column:
        owner = qualified_ident(owner_schema or seq.schema_name, seq.owner_table)
        column = quote_ident(seq.owner_column)
        statements.append(f"ALTER SEQUENCE {seq_name} OWNED BY {owner}.{column};")
        statements.append(
            f"ALTER TABLE {owner} ALTER COLUMN {column} "
            f"SET DEFAULT nextval({quote_literal(seq_name)}::regclass);"
        )

    if seq.last_value is not None:
        statements.append(
            f"SELECT pg_catalog.setval({quote_literal(seq_name)}, {seq.last_value}, true);"
        )

    return "\n".join(statements)


def render_primary_key(table: TableRef, pk: PrimaryKeyDef) -> str:
    """Render ``ALTER TABLE schema.table ADD CONSTRAINT name <definition>;``."""
    return (
        f"ALTER TABLE {qualified_ident(table.schema_name, table.name)} "
        f"ADD CONSTRAINT {quote_ident(pk.constraint_name)} {pk.definition};"
    )


# ============================================================================
# Data: COPY
# ============================================================================


def escape_copy_value(value: str) -> str:
    """Escape a value for the COPY text format.

    Example:
        >>> escape_copy_value("a\\tb")
        'a\\\\tb'
    """
    return value.translate(_COPY_ESCAPES)


def unescape_copy_value(value: str) -> str:
    """Inverse of ``escape_copy_value``."""
    return _COPY_ESCAPE_RE.sub(
        lambda m: _COPY_UNESCAPES.get(m.group(1), m.group(1)), value
    )


def render_copy_block(
    table: TableRef,
    columns: Sequence[ColumnDef],
    rows: Sequence[RowRecord],
) -> str:
    """Render a COPY ... FROM stdin block.

    Example:
        >>> cols = [ColumnDef(name="id", data_type="integer")]
        >>> print(render_copy_block(TableRef(name="t"), cols, [("1",), (None,)]))
        COPY t (id) FROM stdin;
        1
        \\N
        \\.
    """
    if columns:
        header = f"COPY {table_ident(table)} ({_column_list(columns)}) FROM stdin;"
    else:
        header = f"COPY {table_ident(table)} FROM stdin;"

    lines = [header]
    for row in rows:
        lines.append(
            "\t".join(COPY_NULL if v is None else escape_copy_value(v) for v in row)
        )
    lines.append(COPY_TERMINATOR)
    return "\n".join(lines)


def read_copy_block(block: str) -> tuple[str, list[RowRecord]]:
    """Parse a block produced by ``render_copy_block`` back into rows.

    Args:
        block: Text starting with the ``COPY`` header line.

    Returns:
        Tuple of (header line, rows).  ``\\N`` fields come back as ``None``.

    Raises:
        ValueError: If the block has no header or no terminator line.
    """
    lines = block.split("\n")
    if not lines or not lines[0].startswith("COPY "):
        raise ValueError("COPY block must start with a COPY header line")

    # Without a column list every data line is an empty row
    has_columns = lines[0].endswith(") FROM stdin;")
    rows: list[RowRecord] = []
    for line in lines[1:]:
        if line == COPY_TERMINATOR:
            return lines[0], rows
        if not has_columns:
            rows.append(())
            continue
        rows.append(
            tuple(
                None if field == COPY_NULL else unescape_copy_value(field)
                for field in line.split("\t")
            )
        )
    raise ValueError("COPY block is missing its terminator line")


# ============================================================================
# Data: INSERT and CSV
# ============================================================================


def render_insert_statements(
    table: TableRef,
    columns: Sequence[ColumnDef],
    rows: Sequence[RowRecord],
) -> str:
    """Render one INSERT statement per row.

    Every non-NULL value is quoted as a string literal; the server casts
    it to the column type on restore.  A table without columns gets one
    ``INSERT ... DEFAULT VALUES`` per row, since ``()`` is not valid SQL.
    """
    if not columns:
        statement = f"INSERT INTO {table_ident(table)} DEFAULT VALUES;"
        return "\n".join(statement for _ in rows)

    prefix = f"INSERT INTO {table_ident(table)} ({_column_list(columns)}) VALUES"
    statements = []
    for row in rows:
        values = ", ".join("NULL" if v is None else quote_literal(v) for v in row)
        statements.append(f"{prefix} ({values});")
    return "\n".join(statements)


def render_csv_rows(
    columns: Sequence[ColumnDef],
    rows: Sequence[RowRecord],
) -> list[list[str]]:
    """Render a header row followed by data rows.

    NULL becomes the text ``NULL`` and is therefore indistinguishable from
    a value that is literally ``NULL``.
    """
    records = [[col.name for col in columns]]
    for row in rows:
        records.append([CSV_NULL if v is None else v for v in row])
    return records


# ============================================================================
# Table Body
# ============================================================================


def render_table_body(
    table: TableRef,
    columns: Sequence[ColumnDef],
    sequences: Sequence[SequenceDef],
    primary_key: PrimaryKeyDef | None,
    rows: Sequence[RowRecord],
    data_format: DataFormat = DataFormat.COPY,
) -> str:
    """Render the full dump section for one table.

    Sections appear in restore order: CREATE TABLE, sequences (which alter
    the table's column defaults), primary key, then data.  Each section is
    separated by a blank line and the body ends with one.
    """
    sections = [
        f"--\n-- Table: {table.qualified_name}\n--",
        render_create_table(table, columns),
    ]
    sections.extend(render_sequence(seq, table.schema_name) for seq in sequences)
    if primary_key is not None:
        sections.append(render_primary_key(table, primary_key))

    if data_format == DataFormat.INSERT:
        if rows:
            sections.append(render_insert_statements(table, columns, rows))
    else:
        sections.append(render_copy_block(table, columns, rows))

    return "\n\n".join(sections) + "\n\n"
