"""Dump header and footer.

The header carries the tool version, the server version string, the
parallelism used, and a block of session directives that make the script
replay safely through ``psql``.  The footer is a single completion line.
Both are rendered from ``DumpInfo`` with ``string.Template``; a template
error is a programming error and propagates as-is.
"""

from datetime import datetime
from string import Template

from pg_snapdump.adapters.base import DumpSink
from pg_snapdump.dump.models import DumpInfo
from pg_snapdump.errors import SinkWriteError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z %Z"

HEADER_TEMPLATE = Template(
    """-- Dumped by pg-snapdump version $tool_version
-- Dumped from database version $server_version
-- Threads used: $parallelism

SET statement_timeout = 0;
SET lock_timeout = 0;
SET idle_in_transaction_session_timeout = 0;
SET client_encoding = 'UTF8';
SET standard_conforming_strings = on;
SELECT pg_catalog.set_config('search_path', 'public', false);
SET check_function_bodies = false;
SET xmloption = content;
SET client_min_messages = warning;
SET row_security = off;
SET default_tablespace = '';
SET default_table_access_method = heap;

"""
)

FOOTER_TEMPLATE = Template("-- Dump completed on $completion_timestamp\n")


def completion_timestamp(now: datetime | None = None) -> str:
    """Format the completion time in local time with its UTC offset.

    Example:
        >>> from datetime import timezone
        >>> completion_timestamp(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
        '2024-05-01 12:00:00 +0000 UTC'
    """
    now = now or datetime.now().astimezone()
    return now.strftime(TIMESTAMP_FORMAT)


def render_header(info: DumpInfo) -> str:
    return HEADER_TEMPLATE.substitute(info.model_dump())


def render_footer(info: DumpInfo) -> str:
    return FOOTER_TEMPLATE.substitute(info.model_dump())


def write_text(sink: DumpSink, text: str) -> None:
    """Write to the sink, surfacing any I/O failure as ``SinkWriteError``."""
    try:
        sink.write(text)
    except SinkWriteError:
        raise
    except OSError as e:
        raise SinkWriteError(f"Failed to write dump output: {e}") from e


def write_header(sink: DumpSink, info: DumpInfo) -> None:
    """Write the preamble.  Must precede every table body."""
    write_text(sink, render_header(info))


def write_footer(sink: DumpSink, info: DumpInfo) -> None:
    """Write the completion line.  ``info.completion_timestamp`` must be set."""
    write_text(sink, render_footer(info))
