"""CLI for exporting a document store to JSON and SQL Server scripts.

Usage:
    docstore-export export
    docstore-export export -c users,orders -f sql -o ./dump
    docstore-export export --resume
    docstore-export export --reset -v
    docstore-export convert -i ./output/json -o ./output/sql
    docstore-export status

Commands:
    export   - Export root collections (and all sub-collections)
    convert  - Convert exported JSON files to SQL without contacting the store
    status   - Show the persisted progress of an interrupted export
"""

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.status import Status
from rich.table import Table

from docstore_export.config.loader import load_export_config, resolve_config_path
from docstore_export.config.models import ExportConfig, LogLevel, SqlOptions
from docstore_export.export.checkpoint import CheckpointManager
from docstore_export.export.convert import convert_directory
from docstore_export.export.driver import CollectionExportError, run_export
from docstore_export.export.models import ExportSummary, NullProgress, ProgressReporter
from docstore_export.factory import StoreNotConfiguredError, get_store, reset_store
from docstore_export.stores.base import StoreError

console = Console()

ROOT_LOGGER_NAME = "docstore_export"

_LOG_LEVELS = {
    LogLevel.QUIET: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


# ============================================================================
# Logging and progress
# ============================================================================


def setup_logging(log_level: LogLevel = LogLevel.NORMAL) -> None:
    """Route package logs through rich at the level for *log_level*.

    Safe to call more than once; existing handlers are replaced.
    """
    level = _LOG_LEVELS[LogLevel(log_level)]

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(level)
    root_logger.addHandler(handler)

    # Quiet down client libraries
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class ConsoleProgress:
    """``ProgressReporter`` that shows the latest message in a rich status line."""

    def __init__(self, status: Status) -> None:
        self._status = status

    def report(self, status: str) -> None:
        self._status.update(escape(status))


# ============================================================================
# Configuration
# ============================================================================


def _split_collections(value: str | None) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _load_config(args: argparse.Namespace) -> ExportConfig:
    """Load export.toml and apply command line overrides.

    Raises:
        ValueError: If the config file or an override is invalid.
    """
    config_path = resolve_config_path(
        Path(args.config) if getattr(args, "config", None) else None,
        getattr(args, "env_prefix", ""),
    )
    config = load_export_config(config_path)

    overrides: dict[str, Any] = {}
    if getattr(args, "collections", None):
        overrides["collections"] = _split_collections(args.collections)
    if getattr(args, "format", None):
        overrides["format"] = args.format
    if getattr(args, "key", None):
        overrides["service_account_path"] = args.key
    if getattr(args, "output", None):
        overrides["output_dir"] = args.output
    if getattr(args, "batch_size", None) is not None:
        overrides["batch_size"] = args.batch_size
    if getattr(args, "stop_on_error", False):
        overrides["continue_on_error"] = False
    if getattr(args, "quiet", False):
        overrides["log_level"] = LogLevel.QUIET
    elif getattr(args, "verbose", False):
        overrides["log_level"] = LogLevel.VERBOSE

    if not overrides:
        return config

    try:
        return ExportConfig.model_validate({**config.model_dump(), **overrides})
    except ValueError as e:
        raise ValueError(f"Invalid option: {e}") from e


# ============================================================================
# Output helpers
# ============================================================================


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def _print_summary(summary: ExportSummary, config: ExportConfig) -> None:
    """Print the end-of-run summary table."""
    files = summary.files_by_sink

    table = Table(title="Export Summary", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    exported = f"{len(summary.exported)}/{len(summary.requested)}"
    if summary.already_completed:
        exported += f" ({len(summary.already_completed)} from previous run)"
    table.add_row("Collections", exported)
    table.add_row("Documents", f"{summary.total_documents:,}")
    if "json" in files:
        table.add_row("JSON files", str(files["json"]))
    if "sql" in files:
        table.add_row("SQL files", str(files["sql"]))
    table.add_row("Elapsed", _format_duration(summary.elapsed_seconds))
    table.add_row("Output", str(config.output_dir))

    console.print()
    console.print(table)

    if config.log_level == LogLevel.VERBOSE and summary.timings:
        slow = Table(title="Slowest Collections", show_header=True, header_style="bold")
        slow.add_column("Collection")
        slow.add_column("Documents", justify="right")
        slow.add_column("Time", justify="right")
        for timing in summary.slowest(5):
            slow.add_row(timing.name, f"{timing.docs:,}", _format_duration(timing.seconds))
        console.print(slow)


def _print_resume_hint() -> None:
    console.print(
        "[dim]Run[/dim] [cyan]docstore-export export --resume[/cyan] "
        "[dim]to continue where it stopped.[/dim]"
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_export(args: argparse.Namespace, config: ExportConfig) -> int:
    """Async implementation for export command.

    Args:
        args: Parsed arguments with resume and reset.
        config: Configuration with overrides applied.

    Returns:
        0 when every requested collection was exported, 1 otherwise.
    """
    try:
        store = get_store(config)
    except StoreNotConfiguredError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    quiet = config.log_level == LogLevel.QUIET
    if not quiet:
        console.print(
            f"Exporting to [bold]{config.output_dir}[/bold] "
            f"(format: [cyan]{config.format.value}[/cyan], batch size: {config.batch_size})"
        )

    status_context = contextlib.nullcontext() if quiet else console.status("Starting export...")
    try:
        with status_context as status:
            progress: ProgressReporter = NullProgress() if status is None else ConsoleProgress(status)
            summary = await run_export(
                store,
                config,
                resume=args.resume,
                reset=args.reset,
                progress=progress,
            )
    except CollectionExportError as e:
        console.print()
        console.print(f"[bold red]x[/bold red] Export failed on collection [bold]{e.collection}[/bold]")
        console.print(f"  Error: {escape(str(e.cause))}")
        if e.summary is not None and e.summary.exported:
            _print_summary(e.summary, config)
        _print_resume_hint()
        return EXIT_FAILURE
    except StoreError as e:
        console.print(f"\n[bold red]x[/bold red] {escape(str(e))}")
        return EXIT_FAILURE
    finally:
        await reset_store()

    if not summary.requested:
        console.print("[yellow]No collections found to export.[/yellow]")
        return EXIT_OK

    if summary.resumed and not summary.exported and not summary.failed:
        console.print("[green]All collections were already exported. Nothing to do.[/green]")
        return EXIT_OK

    _print_summary(summary, config)

    if not summary.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {len(summary.failed)} collection(s) failed:")
        for failure in summary.failed:
            console.print(f"  [bold]{escape(failure.collection)}[/bold]: {escape(failure.message)}")
        _print_resume_hint()
        return EXIT_FAILURE

    console.print("\n[bold green]v[/bold green] Export complete")
    return EXIT_OK


# ============================================================================
# Command handlers
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Export collections.

    Wraps the async implementation with ``asyncio.run()``.  An interrupt
    leaves the last durable checkpoint in place.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure, 130 when interrupted.
    """
    try:
        config = _load_config(args)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    setup_logging(config.log_level)

    try:
        return asyncio.run(_async_export(args, config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Export interrupted.[/yellow]")
        _print_resume_hint()
        return EXIT_INTERRUPTED


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert exported JSON files into SQL scripts.

    Reads only local files -- no store calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if the input is missing or any file failed.
    """
    try:
        config = _load_config(args)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    setup_logging(config.log_level)

    input_dir = Path(args.json_input) if args.json_input else config.json_dir
    output_dir = Path(args.sql_output) if args.sql_output else config.sql_dir
    options = SqlOptions(
        schema_name=config.sql.schema_name,
        include_create_table=config.sql.include_create_table and not args.no_create_table,
        include_drop_table=config.sql.include_drop_table and not args.no_drop_table,
    )

    console.print(f"Input:  [bold]{input_dir}[/bold]")
    console.print(f"Output: [bold]{output_dir}[/bold]")

    try:
        result = convert_directory(input_dir, output_dir, options)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    if not (result.converted or result.skipped or result.failed):
        console.print(f"[yellow]No JSON files found in: {input_dir}[/yellow]")
        return EXIT_OK

    console.print(f"\n[bold green]v[/bold green] Converted {len(result.converted)} files to SQL")
    if result.skipped:
        console.print(f"  Skipped (no documents): {', '.join(result.skipped)}")
    if result.failed:
        for failure in result.failed:
            console.print(f"  [red]x {escape(failure.file)}: {escape(failure.error)}[/red]")
        return EXIT_FAILURE

    return EXIT_OK


def cmd_status(args: argparse.Namespace) -> int:
    """Show the persisted export state.

    Reads only the local state file -- no store calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 always; 1 only when the config file is invalid.
    """
    try:
        config = _load_config(args)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_FAILURE

    checkpoint = CheckpointManager(config.state_file).load()
    if checkpoint is None:
        console.print("[dim]No export in progress.[/dim]")
        return EXIT_OK

    remaining = checkpoint.remaining()

    table = Table(title="Export State", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Format", checkpoint.requested_format)
    table.add_row(
        "Completed",
        f"{len(checkpoint.completed)}/{len(checkpoint.requested_collections)}",
    )
    table.add_row("Remaining", ", ".join(remaining) if remaining else "-")
    table.add_row("Started", checkpoint.started_at.isoformat())
    table.add_row("Last updated", checkpoint.last_updated.isoformat())
    if checkpoint.last_error is not None:
        table.add_row(
            "Last error",
            f"[red]{escape(checkpoint.last_error.collection)}: {escape(checkpoint.last_error.message)}[/red]",
        )

    console.print(table)
    _print_resume_hint()
    return EXIT_OK


# ============================================================================
# Main entry point
# ============================================================================


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="docstore-export",
        description="Export a hierarchical document store to JSON and SQL Server scripts",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to export.toml (default: ./export.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_EXPORT_CONFIG)"
        ),
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    p_export = subparsers.add_parser(
        "export",
        help="Export root collections and their sub-collections",
    )
    p_export.add_argument(
        "--collections",
        "-c",
        help="Comma-separated root collections (default: all)",
    )
    p_export.add_argument(
        "--format",
        "-f",
        choices=["json", "sql", "both"],
        help="Output format (default: both)",
    )
    p_export.add_argument(
        "--key",
        "-k",
        help="Path to the service account key file",
    )
    p_export.add_argument(
        "--output",
        "-o",
        help="Output directory (default: ./output)",
    )
    p_export.add_argument(
        "--resume",
        "-r",
        action="store_true",
        help="Continue a previous interrupted export",
    )
    p_export.add_argument(
        "--reset",
        action="store_true",
        help="Discard previous export progress and start fresh",
    )
    p_export.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Documents per page (default: 500)",
    )
    p_export.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Abort on the first failing collection",
    )
    verbosity = p_export.add_mutually_exclusive_group()
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only show warnings")
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    p_export.set_defaults(func=cmd_export)

    # convert command
    p_convert = subparsers.add_parser(
        "convert",
        help="Convert exported JSON files to SQL",
    )
    p_convert.add_argument(
        "--input",
        "-i",
        dest="json_input",
        help="Directory with JSON files (default: <output>/json)",
    )
    p_convert.add_argument(
        "--output",
        "-o",
        dest="sql_output",
        help="Directory for SQL files (default: <output>/sql)",
    )
    p_convert.add_argument(
        "--no-create-table",
        action="store_true",
        help="Skip CREATE TABLE statements",
    )
    p_convert.add_argument(
        "--no-drop-table",
        action="store_true",
        help="Skip DROP TABLE statements",
    )
    p_convert.set_defaults(func=cmd_convert)

    # status command
    p_status = subparsers.add_parser(
        "status",
        help="Show progress of an interrupted export",
    )
    p_status.set_defaults(func=cmd_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, 1 for failure, 130 when interrupted).
    """
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
