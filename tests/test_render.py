"""Tests for statement rendering.

Covers:
- Identifier and literal quoting
- CREATE TABLE, CREATE SEQUENCE (ownership, default, setval), primary key
- COPY blocks: escaping, NULL marker, terminator, parse-back
- INSERT statements: quote doubling, bare NULL
- CSV rows: header plus NULL text
- Full table bodies in both data formats, and determinism
"""

import pytest

from pg_snapdump.dump.models import DataFormat
from pg_snapdump.dump.render import (
    escape_copy_value,
    quote_ident,
    quote_literal,
    read_copy_block,
    render_copy_block,
    render_create_table,
    render_csv_rows,
    render_insert_statements,
    render_primary_key,
    render_sequence,
    render_table_body,
    table_ident,
    unescape_copy_value,
)
from pg_snapdump.schema.models import ColumnDef, PrimaryKeyDef, SequenceDef, TableRef


# ----- Fixtures -----


@pytest.fixture
def table() -> TableRef:
    return TableRef(name="t")


@pytest.fixture
def columns() -> list[ColumnDef]:
    return [
        ColumnDef(name="id", data_type="integer"),
        ColumnDef(name="name", data_type="character varying", max_length=10),
    ]


@pytest.fixture
def rows() -> list[tuple[str | None, ...]]:
    return [("1", "a"), ("2", None)]


def _sequence(**overrides) -> SequenceDef:
    fields = dict(
        schema_name="public",
        name="t_id_seq",
        increment_by=1,
        min_value=1,
        max_value=2147483647,
        start_value=1,
        cache_size=1,
        owner_table="t",
        owner_column="id",
    )
    fields.update(overrides)
    return SequenceDef(**fields)


# ============================================================
# Test: Quoting
# ============================================================


class TestQuoting:
    """Identifier and literal quoting rules."""

    def test_plain_identifier_unquoted(self) -> None:
        assert quote_ident("user_id") == "user_id"

    def test_mixed_case_identifier_quoted(self) -> None:
        assert quote_ident("UserId") == '"UserId"'

    def test_reserved_word_quoted(self) -> None:
        assert quote_ident("order") == '"order"'

    def test_embedded_double_quote_doubled(self) -> None:
        assert quote_ident('a"b') == '"a""b"'

    def test_literal_doubles_single_quotes(self) -> None:
        assert quote_literal("O'Brien") == "'O''Brien'"

    def test_public_table_unqualified(self) -> None:
        assert table_ident(TableRef(name="users")) == "users"

    def test_other_schema_table_qualified(self) -> None:
        assert table_ident(TableRef(schema_name="audit", name="events")) == "audit.events"


# ============================================================
# Test: Schema statements
# ============================================================


class TestCreateTable:
    """CREATE TABLE rendering."""

    def test_columns_in_input_order_with_length(self, table, columns) -> None:
        assert render_create_table(table, columns) == (
            "CREATE TABLE t (\n"
            "    id integer,\n"
            "    name character varying(10)\n"
            ");"
        )

    def test_no_columns(self, table) -> None:
        assert render_create_table(table, []) == "CREATE TABLE t ();"


class TestSequence:
    """CREATE SEQUENCE rendering with ownership and current value."""

    def test_full_sequence(self) -> None:
        rendered = render_sequence(_sequence(last_value=42))
        assert rendered == (
            "CREATE SEQUENCE public.t_id_seq\n"
            "    INCREMENT BY 1\n"
            "    MINVALUE 1\n"
            "    MAXVALUE 2147483647\n"
            "    START WITH 1\n"
            "    CACHE 1\n"
            "    NO CYCLE;\n"
            "ALTER SEQUENCE public.t_id_seq OWNED BY public.t.id;\n"
            "ALTER TABLE public.t ALTER COLUMN id "
            "SET DEFAULT nextval('public.t_id_seq'::regclass);\n"
            "SELECT pg_catalog.setval('public.t_id_seq', 42, true);"
        )

    def test_cycle(self) -> None:
        assert "    CYCLE;" in render_sequence(_sequence(cycles=True))

    def test_no_owner_no_alter_statements(self) -> None:
        rendered = render_sequence(_sequence(owner_table=None, owner_column=None))
        assert "OWNED BY" not in rendered
        assert "SET DEFAULT" not in rendered

    def test_no_last_value_no_setval(self) -> None:
        assert "setval" not in render_sequence(_sequence())

    def test_large_values_rendered_verbatim(self) -> None:
        rendered = render_sequence(_sequence(max_value=9223372036854775807, increment_by=-5))
        assert "MAXVALUE 9223372036854775807" in rendered
        assert "INCREMENT BY -5" in rendered

    def test_owner_schema_overrides_sequence_schema(self) -> None:
        rendered = render_sequence(_sequence(schema_name="seqs"), owner_schema="app")
        assert "OWNED BY app.t.id;" in rendered


class TestPrimaryKey:
    """Primary key constraint rendering."""

    def test_definition_passed_through(self, table) -> None:
        pk = PrimaryKeyDef(constraint_name="t_pkey", definition="PRIMARY KEY (id)")
        assert render_primary_key(table, pk) == (
            "ALTER TABLE public.t ADD CONSTRAINT t_pkey PRIMARY KEY (id);"
        )


# ============================================================
# Test: COPY
# ============================================================


class TestCopyBlock:
    """COPY block rendering and parse-back."""

    def test_example_block(self, table, columns, rows) -> None:
        block = render_copy_block(table, columns, rows)
        assert block.split("\n") == [
            "COPY t (id, name) FROM stdin;",
            "1\ta",
            "2\t\\N",
            "\\.",
        ]

    def test_read_back_reproduces_rows(self, table, columns, rows) -> None:
        header, parsed = read_copy_block(render_copy_block(table, columns, rows))
        assert header == "COPY t (id, name) FROM stdin;"
        assert parsed == rows

    def test_empty_string_distinct_from_null(self, table, columns) -> None:
        block = render_copy_block(table, columns, [("1", ""), ("2", None)])
        assert block.split("\n")[1:3] == ["1\t", "2\t\\N"]
        _, parsed = read_copy_block(block)
        assert parsed == [("1", ""), ("2", None)]

    def test_control_characters_escaped(self) -> None:
        assert escape_copy_value("a\tb\nc\\d\re") == "a\\tb\\nc\\\\d\\re"

    def test_literal_backslash_n_is_not_null(self, table, columns) -> None:
        _, parsed = read_copy_block(render_copy_block(table, columns, [("1", "\\N")]))
        assert parsed == [("1", "\\N")]

    def test_unescape_is_inverse(self) -> None:
        value = "tab\there\\back\vvert\bbs\fff"
        assert unescape_copy_value(escape_copy_value(value)) == value

    def test_no_rows(self, table, columns) -> None:
        assert render_copy_block(table, columns, []) == (
            "COPY t (id, name) FROM stdin;\n\\."
        )

    def test_zero_column_rows_read_back(self, table) -> None:
        block = render_copy_block(table, [], [(), ()])
        assert block == "COPY t FROM stdin;\n\n\n\\."

        header, parsed = read_copy_block(block)
        assert header == "COPY t FROM stdin;"
        assert parsed == [(), ()]

    def test_read_rejects_missing_header(self) -> None:
        with pytest.raises(ValueError, match="header"):
            read_copy_block("1\ta\n\\.")

    def test_read_rejects_missing_terminator(self) -> None:
        with pytest.raises(ValueError, match="terminator"):
            read_copy_block("COPY t (id) FROM stdin;\n1")


# ============================================================
# Test: INSERT and CSV
# ============================================================


class TestInsertStatements:
    """INSERT statement rendering."""

    def test_example_statements(self, table, columns, rows) -> None:
        assert render_insert_statements(table, columns, rows).split("\n") == [
            "INSERT INTO t (id, name) VALUES ('1', 'a');",
            "INSERT INTO t (id, name) VALUES ('2', NULL);",
        ]

    def test_embedded_quote_doubled(self, table, columns) -> None:
        rendered = render_insert_statements(table, columns, [("3", "it's")])
        assert rendered == "INSERT INTO t (id, name) VALUES ('3', 'it''s');"

    def test_no_rows_renders_nothing(self, table, columns) -> None:
        assert render_insert_statements(table, columns, []) == ""

    def test_zero_columns_use_default_values(self, table) -> None:
        rendered = render_insert_statements(table, [], [(), ()])
        assert rendered.split("\n") == [
            "INSERT INTO t DEFAULT VALUES;",
            "INSERT INTO t DEFAULT VALUES;",
        ]
        assert "()" not in rendered


class TestCsvRows:
    """CSV record rendering."""

    def test_header_and_null_text(self, columns, rows) -> None:
        assert render_csv_rows(columns, rows) == [
            ["id", "name"],
            ["1", "a"],
            ["2", "NULL"],
        ]


# ============================================================
# Test: Table body
# ============================================================


class TestTableBody:
    """Full per-table section rendering."""

    def test_section_order(self, table, columns, rows) -> None:
        pk = PrimaryKeyDef(constraint_name="t_pkey", definition="PRIMARY KEY (id)")
        body = render_table_body(table, columns, [_sequence()], pk, rows)

        positions = [
            body.index("-- Table: public.t"),
            body.index("CREATE TABLE t"),
            body.index("CREATE SEQUENCE"),
            body.index("ADD CONSTRAINT t_pkey"),
            body.index("COPY t (id, name) FROM stdin;"),
        ]
        assert positions == sorted(positions)
        assert body.endswith("\\.\n\n")

    def test_insert_format(self, table, columns, rows) -> None:
        body = render_table_body(table, columns, [], None, rows, DataFormat.INSERT)
        assert "INSERT INTO t (id, name) VALUES ('2', NULL);" in body
        assert "COPY" not in body

    def test_insert_format_without_rows_has_no_data_section(self, table, columns) -> None:
        body = render_table_body(table, columns, [], None, [], DataFormat.INSERT)
        assert body.endswith(");\n\n")
        assert "INSERT" not in body

    def test_rendering_is_deterministic(self, table, columns, rows) -> None:
        pk = PrimaryKeyDef(constraint_name="t_pkey", definition="PRIMARY KEY (id)")
        first = render_table_body(table, columns, [_sequence(last_value=2)], pk, rows)
        second = render_table_body(table, columns, [_sequence(last_value=2)], pk, rows)
        assert first == second
