"""
Command Line Interface for pkbimport.

Inspect and convert knowledge-base exports (browser bookmarks, Pocket,
Evernote, Notion, X/Twitter, Raindrop.io) into canonical import items.

Commands:
    sources  List the supported import sources
    detect   Show which export format a file looks like, with evidence
    parse    Parse an export, report diagnostics and optionally write JSON
"""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pkbimport import __version__
from pkbimport.config import SOURCES, AppConfig, ConfigError, get_config, load_config
from pkbimport.detection import detect_formats
from pkbimport.parsers import ParseResult, ParserError
from pkbimport.pipeline import ImportFileError, ImportPlan, load_export, plan_import
from pkbimport.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()

MAX_LISTED_ERRORS = 20


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print styled header."""
    console.print(f"\n[bold cyan]{escape(text)}[/bold cyan]\n")


def print_success(text: str) -> None:
    """Print green success message."""
    console.print(f"[bold green]✓[/bold green] {escape(text)}")


def print_warning(text: str) -> None:
    """Print yellow warning message."""
    console.print(f"[bold yellow]⚠[/bold yellow] {escape(text)}", highlight=False)


def print_error(text: str) -> None:
    """Print red error message."""
    console.print(f"[bold red]✗[/bold red] {escape(text)}", highlight=False)


def print_stats_table(result: ParseResult) -> None:
    table = Table(title=f"{result.source.value.title()} import ({result.format.value})")
    table.add_column("Total", justify="right")
    table.add_column("Parsed", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Success rate", justify="right")

    table.add_row(
        str(result.stats.total),
        str(result.stats.parsed),
        str(result.stats.skipped),
        str(len(result.errors)),
        f"{result.success_rate():.0%}",
    )
    console.print(table)


def print_errors_table(result: ParseResult, limit: int | None) -> None:
    errors = result.errors if limit is None else result.errors[:limit]

    table = Table(title="Errors")
    table.add_column("Item", style="cyan", overflow="fold")
    table.add_column("Message", overflow="fold")
    for error in errors:
        table.add_row(escape(error.item or "-"), escape(error.message))
    console.print(table)

    hidden = len(result.errors) - len(errors)
    if hidden > 0:
        console.print(f"... and {hidden} more (use --show-errors to list all)")


def write_output(path: Path, result: ParseResult, plan: ImportPlan) -> None:
    """Write planned items and diagnostics as JSON."""
    payload = {
        "format": result.format.value,
        "source": result.source.value,
        "success": result.success,
        "stats": result.to_dict()["stats"],
        "plan": plan.to_dict(),
        "items": [item.to_dict() for item in plan.items],
        "errors": result.to_dict()["errors"],
        "warnings": list(result.warnings),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="pkbimport")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(), help="Custom config file")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
@click.pass_context
def cli(ctx, verbose, debug, config_path, quiet):
    """
    pkbimport - Convert knowledge-base exports into importable items.

    Supports browser bookmarks, Pocket, Evernote, Notion, X/Twitter
    bookmarks and Raindrop.io.
    """
    try:
        config = load_config(Path(config_path)) if config_path else get_config()
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)

    if debug or config.debug:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    elif verbose:
        level = "INFO"
    else:
        level = "WARNING"
    setup_logging(level=level, log_file=config.logging.file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["quiet"] = quiet


# =============================================================================
# SOURCES COMMAND
# =============================================================================


@cli.command()
def sources():
    """List supported import sources."""
    table = Table(title="Import Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Name")
    table.add_column("Extensions")
    table.add_column("Max size", justify="right")
    table.add_column("Description")

    for source in SOURCES.values():
        table.add_row(
            source.id.value,
            source.name,
            ", ".join(source.accepted_extensions),
            f"{source.max_file_size // (1024 * 1024)} MB",
            source.description,
        )
    console.print(table)


# =============================================================================
# DETECT COMMAND
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def detect(file):
    """
    Detect which export format FILE is.

    Example:
        pkbimport detect ~/Downloads/bookmarks_1_15_24.html
    """
    results = detect_formats(file.read_bytes())
    if not results:
        print_error(f"No supported export format detected in {file.name}")
        sys.exit(1)

    table = Table(title=f"Detected Formats: {file.name}")
    table.add_column("Format", style="cyan")
    table.add_column("Source")
    table.add_column("Confidence", style="green")
    table.add_column("Evidence", overflow="fold")

    for result in results:
        table.add_row(
            result.format.value,
            result.source.value,
            result.confidence.value.upper(),
            "; ".join(result.evidence),
        )
    console.print(table)


# =============================================================================
# PARSE COMMAND
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--source",
    "-s",
    type=click.Choice([s.value for s in SOURCES]),
    help="Export source (detected from content when omitted)",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write items as JSON")
@click.option("--tag", "-t", "tags", multiple=True, help="Extra tag for every item (repeatable)")
@click.option("--batch-size", type=click.IntRange(1, 1000), help="Items per import batch")
@click.option("--show-errors", is_flag=True, help="List every item-level error")
@click.pass_context
def parse(ctx, file, source, output, tags, batch_size, show_errors):
    """
    Parse FILE and report what would be imported.

    Example:
        pkbimport parse export.zip --source notion -o notion.json --tag imported
    """
    config: AppConfig = ctx.obj["config"]
    quiet = ctx.obj["quiet"]

    if not quiet:
        print_header(f"Parsing {file.name}")

    try:
        result = load_export(file, source)
    except (ImportFileError, ParserError) as e:
        print_error(e.message)
        sys.exit(1)

    if not result.success:
        for error in result.errors:
            print_error(error.message)
        sys.exit(1)

    print_stats_table(result)

    for warning in result.warnings:
        print_warning(warning)

    if result.errors:
        print_errors_table(result, None if show_errors else MAX_LISTED_ERRORS)

    plan = plan_import(
        result.items,
        additional_tags=[*config.importing.additional_tags, *tags],
        skip_duplicates=config.importing.skip_duplicates,
        batch_size=batch_size or config.importing.batch_size,
    )
    print_success(plan.to_summary())

    if output:
        write_output(output, result, plan)
        print_success(f"Wrote {plan.to_import} items to {output}")


def main() -> None:
    """Entry point for the ``pkbimport`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
