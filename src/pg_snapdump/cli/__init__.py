"""CLI for consistent, concurrent PostgreSQL dumps.

Usage:
    pg-snapdump profiles
    DB_PROFILE=prod pg-snapdump tables --prefix evt_
    pg-snapdump dump --profile prod --output dump.sql --threads 8
    pg-snapdump dump --url postgresql://localhost/app --format insert --on-error abort
    pg-snapdump csv ./export --profile prod --ignore audit_log

Commands:
    profiles  - List profiles from snapdump.toml
    tables    - List the tables a dump would include
    dump      - Write a SQL dump to a file or stdout
    csv       - Write one CSV file per table into a directory
"""

import argparse
import asyncio
import logging
import sys
from contextlib import ExitStack
from functools import partial
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pg_snapdump.adapters.sink import StreamSink
from pg_snapdump.adapters.snapshot import SnapshotCoordinator
from pg_snapdump.config.loader import load_dump_config
from pg_snapdump.config.models import DumpConfig
from pg_snapdump.dump.engine import dump_database, dump_to_csv
from pg_snapdump.dump.models import DataFormat, DumpResult, DumpSettings, OnTableError
from pg_snapdump.errors import DumpError
from pg_snapdump.factory import (
    ProfileNotFoundError,
    create_coordinator,
    get_active_profile_name,
)
from pg_snapdump.schema.catalog import CatalogReader
from pg_snapdump.version import fetch_latest_tag

console = Console()
err_console = Console(stderr=True)

# Errors reported as a one-line message with exit code 1
_EXPECTED_ERRORS = (DumpError, ProfileNotFoundError, OSError, ValidationError)


# ============================================================================
# Helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    logging.getLogger("pg_snapdump").setLevel(logging.DEBUG if verbose else logging.INFO)


def _load_config(args: argparse.Namespace) -> DumpConfig | None:
    """Load the config file.

    An explicit ``--config`` must exist.  The default ``./snapdump.toml``
    is optional when ``--url`` is given.
    """
    config_path = getattr(args, "config", None)
    if config_path is not None:
        return load_dump_config(Path(config_path))
    try:
        return load_dump_config()
    except FileNotFoundError:
        if getattr(args, "url", None):
            return None
        raise


def _settings(args: argparse.Namespace, config: DumpConfig | None) -> DumpSettings:
    """Merge CLI flags over the config's ``[dump]`` section."""
    settings = config.dump if config is not None else DumpSettings()
    overrides = {
        "schema_name": getattr(args, "schema", None),
        "name_prefix": getattr(args, "prefix", None),
        "name_suffix": getattr(args, "suffix", None),
        "parallelism": getattr(args, "threads", None),
        "on_table_error": getattr(args, "on_error", None),
        "data_format": getattr(args, "format", None),
    }
    update = {k: v for k, v in overrides.items() if v is not None}

    ignore = getattr(args, "ignore", None)
    if ignore:
        names = [name.strip() for item in ignore for name in item.split(",") if name.strip()]
        update["ignore_tables"] = [*settings.ignore_tables, *names]

    # Re-validate so enum strings and parallelism defaults are applied
    return DumpSettings.model_validate({**settings.model_dump(), **update})


def _coordinator(
    args: argparse.Namespace, config: DumpConfig | None, settings: DumpSettings
) -> SnapshotCoordinator:
    return create_coordinator(
        getattr(args, "profile", None),
        database_url=getattr(args, "url", None),
        env_prefix=getattr(args, "env_prefix", ""),
        config=config,
        connect_timeout=settings.connect_timeout,
    )


def _version_source(args: argparse.Namespace):
    """Build the remote version lookup from ``--remote-version OWNER/REPO``."""
    target = getattr(args, "remote_version", None)
    if not target:
        return None
    owner, _, repo = target.partition("/")
    return partial(fetch_latest_tag, owner, repo)


def _report(result: DumpResult) -> None:
    """Summarize a run on stderr."""
    err_console.print(
        f"[bold green]v[/bold green] Dumped [bold]{len(result.dumped)}[/bold] table(s) "
        f"with {result.info.parallelism} thread(s)"
    )
    if result.failures:
        err_console.print(f"[yellow]{len(result.failures)} table(s) failed:[/yellow]")
        for job in result.failures:
            err_console.print(f"  [yellow]- {job.table.qualified_name}: {job.err}[/yellow]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_tables(args: argparse.Namespace) -> int:
    """Async implementation for tables command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        settings = _settings(args, config)
        coordinator = _coordinator(args, config, settings)

        async with coordinator:
            reader = CatalogReader(coordinator.connection)
            tables = await reader.list_tables(settings.table_filter())
    except _EXPECTED_ERRORS as e:
        err_console.print(f"[red]Error: {e}[/red]")
        return 1

    ignored = set(settings.ignore_tables)
    table = Table(
        title=f"Tables in {settings.schema_name}", show_header=True, header_style="bold"
    )
    table.add_column("Table")
    table.add_column("Included")
    for ref in tables:
        included = "[dim]ignored[/dim]" if ref.name in ignored else "[green]yes[/green]"
        table.add_row(ref.display_name, included)

    console.print(table)
    return 0


async def _async_dump(args: argparse.Namespace) -> int:
    """Async implementation for dump command.

    Returns:
        0 on success (including failed tables under ``continue``),
        1 on failure.
    """
    try:
        config = _load_config(args)
        settings = _settings(args, config)
        coordinator = _coordinator(args, config, settings)

        with ExitStack() as stack:
            if args.output:
                stream = stack.enter_context(open(args.output, "w", encoding="utf-8"))
            else:
                stream = sys.stdout
            sink = StreamSink(stream)
            result = await dump_database(
                coordinator,
                sink,
                settings,
                version_source=_version_source(args),
            )
            sink.flush()
    except _EXPECTED_ERRORS as e:
        err_console.print(f"[bold red]x[/bold red] {e}")
        return 1

    _report(result)
    if args.output:
        err_console.print(f"  Output: [cyan]{args.output}[/cyan]")
    return 0


async def _async_csv(args: argparse.Namespace) -> int:
    """Async implementation for csv command.

    Returns:
        0 on success, 1 on failure.
    """
    output_dir = Path(args.directory)
    try:
        config = _load_config(args)
        settings = _settings(args, config)
        coordinator = _coordinator(args, config, settings)

        output_dir.mkdir(parents=True, exist_ok=True)
        result = await dump_to_csv(coordinator, output_dir, settings)
    except _EXPECTED_ERRORS as e:
        err_console.print(f"[bold red]x[/bold red] {e}")
        return 1

    _report(result)
    err_console.print(f"  Wrote {len(result.paths)} file(s) to [cyan]{output_dir}[/cyan]")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from snapdump.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if the config is missing or invalid.
    """
    try:
        config_path = getattr(args, "config", None)
        config = load_dump_config(Path(config_path) if config_path else None)
    except (FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = get_active_profile_name(getattr(args, "env_prefix", ""))
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


def cmd_tables(args: argparse.Namespace) -> int:
    """List the tables a dump would include.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_tables(args))


def cmd_dump(args: argparse.Namespace) -> int:
    """Write a SQL dump.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_dump(args))


def cmd_csv(args: argparse.Namespace) -> int:
    """Write one CSV per table.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_csv(args))


# ============================================================================
# Main entry point
# ============================================================================


def _connection_parser() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--profile", "-p", help="Profile from snapdump.toml")
    parent.add_argument("--url", help="Connection URL (overrides --profile)")
    return parent


def _selection_parser() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--schema", help="Schema to dump (default: public)")
    parent.add_argument("--prefix", help="Only tables whose name starts with this")
    parent.add_argument("--suffix", help="Only tables whose name ends with this")
    parent.add_argument(
        "--ignore",
        action="append",
        help="Table names to skip; comma-separated, repeatable",
    )
    return parent


def _run_parser() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--threads",
        "-j",
        type=int,
        help="Maximum tables dumped concurrently (default: 50)",
    )
    parent.add_argument(
        "--on-error",
        choices=[p.value for p in OnTableError],
        help="Keep going past failed tables, or stop (default: continue)",
    )
    return parent


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="pg-snapdump",
        description="Consistent, concurrent PostgreSQL dumps",
    )

    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--config", "-c", help="Path to snapdump.toml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    connection = _connection_parser()
    selection = _selection_parser()
    run = _run_parser()

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    # tables command
    p_tables = subparsers.add_parser(
        "tables",
        parents=[connection, selection],
        help="List the tables a dump would include",
    )
    p_tables.set_defaults(func=cmd_tables)

    # dump command
    p_dump = subparsers.add_parser(
        "dump",
        parents=[connection, selection, run],
        help="Write a SQL dump",
    )
    p_dump.add_argument("--output", "-o", help="Output file (default: stdout)")
    p_dump.add_argument(
        "--format",
        "-F",
        choices=[f.value for f in DataFormat],
        help="Row data as COPY blocks or INSERT statements (default: copy)",
    )
    p_dump.add_argument(
        "--remote-version",
        metavar="OWNER/REPO",
        help="Report the latest GitHub tag of OWNER/REPO as the dump version",
    )
    p_dump.set_defaults(func=cmd_dump)

    # csv command
    p_csv = subparsers.add_parser(
        "csv",
        parents=[connection, selection, run],
        help="Write one CSV file per table",
    )
    p_csv.add_argument("directory", help="Output directory (created if missing)")
    p_csv.set_defaults(func=cmd_csv)

    args = parser.parse_args()
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
