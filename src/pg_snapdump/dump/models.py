"""Run-level models for a dump.

Usage:
    from pg_snapdump.dump.models import DumpInfo, DumpJob, DumpResult, OnTableError

    info = DumpInfo(tool_version="0.1.0", parallelism=8)
    settings = DumpSettings(parallelism=8, on_table_error=OnTableError.ABORT)
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pg_snapdump.schema.catalog import DEFAULT_BATCH_SIZE
from pg_snapdump.schema.models import DEFAULT_SCHEMA, TableFilter, TableRef

DEFAULT_PARALLELISM = 50
DEFAULT_CONNECT_TIMEOUT = 10


def resolve_parallelism(value: int | None) -> int:
    """Resolve unset or non-positive parallelism to the default.

    Example:
        >>> resolve_parallelism(0)
        50
        >>> resolve_parallelism(4)
        4
    """
    if value is None or value <= 0:
        return DEFAULT_PARALLELISM
    return value


class OnTableError(str, Enum):
    """What a run does when one table's job fails."""

    CONTINUE = "continue"  # record the failure, keep dumping
    ABORT = "abort"  # finish the current group, then stop


class DataFormat(str, Enum):
    """How row data is framed in the SQL dump."""

    COPY = "copy"
    INSERT = "insert"


class DispatchState(str, Enum):
    """Lifecycle of a dispatcher run."""

    IDLE = "idle"
    LISTING = "listing"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"
    ABORTED = "aborted"


class DumpSettings(BaseModel):
    """Options for one dump run.

    Loaded from the ``[dump]`` section of ``snapdump.toml`` and overridden
    by CLI flags.
    """

    parallelism: int = DEFAULT_PARALLELISM
    on_table_error: OnTableError = OnTableError.CONTINUE
    data_format: DataFormat = DataFormat.COPY
    schema_name: str = DEFAULT_SCHEMA
    name_prefix: str = ""
    name_suffix: str = ""
    ignore_tables: list[str] = Field(default_factory=list)
    batch_size: int = DEFAULT_BATCH_SIZE
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT

    @field_validator("parallelism", mode="before")
    @classmethod
    def _default_parallelism(cls, value: int | None) -> int:
        return resolve_parallelism(value)

    def table_filter(self) -> TableFilter:
        """Build the listing predicate from the schema/prefix/suffix options."""
        return TableFilter(
            schema_name=self.schema_name,
            name_prefix=self.name_prefix,
            name_suffix=self.name_suffix,
        )


class DumpInfo(BaseModel):
    """Run metadata rendered into the header and footer.

    ``completion_timestamp`` is set once, after every job has drained.
    """

    tool_version: str = "unknown"
    server_version: str = "unknown"
    completion_timestamp: str = ""
    parallelism: int = DEFAULT_PARALLELISM


class DumpJob(BaseModel):
    """The unit of concurrent work: one table, owned by one worker."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    table: TableRef
    rendered_body: str = ""
    err: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.err is None


class DumpResult(BaseModel):
    """Outcome of a completed run.

    ``failures`` is only ever non-empty under ``OnTableError.CONTINUE``;
    under ``ABORT`` a failure raises ``DumpFailedError`` instead.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    info: DumpInfo
    dumped: list[TableRef] = Field(default_factory=list)
    failures: list[DumpJob] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures
