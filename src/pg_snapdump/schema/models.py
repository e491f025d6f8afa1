"""Pydantic models for catalog introspection.

This module contains catalog-domain models:
- Table identity and selection: TableRef, TableFilter
- Table structure: ColumnDef, SequenceDef, PrimaryKeyDef
- Data rows: RowRecord (a plain tuple alias)

Run-level models (DumpInfo, DumpJob, DumpResult) live in
pg_snapdump.dump.models.
"""

from pydantic import BaseModel, ConfigDict

DEFAULT_SCHEMA = "public"

# One data row.  Every cell is either ``None`` (SQL NULL) or the value's text
# form; NULL and the empty string are never conflated.
RowRecord = tuple[str | None, ...]


# ============================================================================
# Table Identity
# ============================================================================


class TableRef(BaseModel):
    """A table visible to the dump connection.

    Example:
        >>> TableRef(schema_name="public", name="users").display_name
        'users'
        >>> TableRef(schema_name="audit", name="events").display_name
        'audit.events'
    """

    model_config = ConfigDict(frozen=True)

    schema_name: str = DEFAULT_SCHEMA
    name: str

    @property
    def qualified_name(self) -> str:
        """Always schema-qualified: ``schema.table``."""
        return f"{self.schema_name}.{self.name}"

    @property
    def display_name(self) -> str:
        """Schema-qualified only outside the default schema."""
        if self.schema_name == DEFAULT_SCHEMA:
            return self.name
        return self.qualified_name


class TableFilter(BaseModel):
    """Table selection predicate applied at listing time.

    Example:
        >>> f = TableFilter(name_prefix="evt_")
        >>> f.matches(TableRef(name="evt_log"))
        True
        >>> f.matches(TableRef(name="other"))
        False
    """

    model_config = ConfigDict(frozen=True)

    schema_name: str = DEFAULT_SCHEMA
    name_prefix: str = ""
    name_suffix: str = ""

    def matches(self, table: TableRef) -> bool:
        """Return True if the table falls inside this filter."""
        return (
            table.schema_name == self.schema_name
            and table.name.startswith(self.name_prefix)
            and table.name.endswith(self.name_suffix)
        )


# ============================================================================
# Table Structure
# ============================================================================


class ColumnDef(BaseModel):
    """A table column, in catalog ordinal order.

    Example:
        >>> col = ColumnDef(name="name", data_type="character varying", max_length=10)
        >>> col.type_clause
        'character varying(10)'
    """

    name: str
    data_type: str
    max_length: int | None = None

    @property
    def type_clause(self) -> str:
        """The column type with its length suffix, if any."""
        if self.max_length is None:
            return self.data_type
        return f"{self.data_type}({self.max_length})"


class SequenceDef(BaseModel):
    """A sequence backing one column default of a table."""

    schema_name: str
    name: str
    increment_by: int
    min_value: int
    max_value: int
    start_value: int
    cache_size: int
    cycles: bool = False
    owner_table: str | None = None
    owner_column: str | None = None
    last_value: int | None = None  # None when never called or not readable

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


class PrimaryKeyDef(BaseModel):
    """A primary key constraint.

    ``definition`` is the catalog's own constraint clause
    (e.g. ``PRIMARY KEY (id, tenant_id)``) and is passed through verbatim.
    """

    constraint_name: str
    definition: str
