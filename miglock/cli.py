"""CLI interface for miglock."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click

from . import __version__
from .batch import DEFAULT_WORKERS, analyze_files
from .config import DEFAULT_FORMAT, apply_config_to_cli_params, load_config
from .exceptions import ConfigError
from .extractors import SUPPORTED_DIALECTS
from .formatters import JsonFormatter, MarkdownFormatter
from .formatters.base import Formatter
from .formatters.markdown_formatter import NO_FILES_SENTINEL
from .models import FileAnalysis, RiskLevel
from .sources import find_migration_files

# Constants
DEFAULT_ENCODING = "utf-8"
FORMAT_MARKDOWN = "markdown"
FORMAT_JSON = "json"
CONFIG_KEYS = ("exclude", "output_format", "pg_version", "dialect", "workers", "verbose", "exit_code")

# Logging setup
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Route library logging to stderr; stdout carries only the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_and_apply_config(config_path: Optional[str], cli_params: dict) -> dict:
    """
    Loads configuration and applies it to CLI parameters.

    Args:
        config_path: Path to the configuration file
        cli_params: Dictionary of CLI parameters

    Returns:
        Updated dictionary of parameters

    Raises:
        SystemExit: If configuration loading error occurred
    """
    if not config_path:
        return cli_params

    try:
        config_obj = load_config(Path(config_path))
    except ConfigError as e:
        click.echo(f"❌ Configuration loading error: {e}", err=True)
        sys.exit(1)

    updated_params = apply_config_to_cli_params(config_obj, cli_params)
    result = cli_params.copy()
    for key in updated_params.get("_applied_from_config", []):
        if key in CONFIG_KEYS:
            result[key] = updated_params[key]

    logger.info(f"Configuration loaded from {config_path}")
    return result


def get_formatter(format_name: str) -> Formatter:
    """
    Creates a formatter by name.

    Args:
        format_name: Format name (markdown, json)

    Returns:
        Formatter instance
    """
    formatter_classes = {
        FORMAT_MARKDOWN: MarkdownFormatter,
        FORMAT_JSON: JsonFormatter,
    }

    if format_name not in formatter_classes:
        raise click.BadParameter(f"Unknown format: {format_name}. Available: {', '.join(formatter_classes)}")

    return formatter_classes[format_name]()


def should_fail(results: List[FileAnalysis]) -> bool:
    """
    Checks whether the results warrant a non-zero exit code.

    True if any file failed to analyze, is CRITICAL, or has a
    CONCURRENTLY-inside-transaction conflict.
    """
    for result in results:
        if result.report is None:
            return True
        if result.report.risk_level == RiskLevel.CRITICAL or result.report.transaction_error:
            return True
    return False


def write_output(output_text: str, output: Optional[str]) -> int:
    """Print the report, or save it to ``output``. Returns an exit code."""
    if not output:
        click.echo(output_text)
        return 0

    output_path = Path(output)
    try:
        # Create directory if it doesn't exist
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output_text, encoding=DEFAULT_ENCODING)
    except OSError as e:
        click.echo(f"❌ Error saving result to {output_path}: {e}", err=True)
        return 1
    click.echo(f"✅ Result saved to: {output_path}", err=True)
    return 0


@click.group()
@click.version_option(version=__version__, prog_name="miglock")
def cli():
    """miglock - PostgreSQL lock analysis for schema migrations."""
    pass


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=False))
@click.option(
    "--format",
    "output_format",
    type=click.Choice([FORMAT_MARKDOWN, FORMAT_JSON], case_sensitive=False),
    default=DEFAULT_FORMAT,
    help="Output format (default: markdown)",
)
@click.option("--output", "-o", type=click.Path(), help="Save result to file (if not specified, output to stdout)")
@click.option("--pg-version", type=click.IntRange(min=9), help="Target PostgreSQL major version (default: 11 or later)")
@click.option(
    "--dialect",
    type=click.Choice(list(SUPPORTED_DIALECTS), case_sensitive=False),
    help="Force a migration dialect instead of detecting it per file",
)
@click.option("--workers", type=click.IntRange(min=1), help=f"Files analyzed in parallel (default: {DEFAULT_WORKERS})")
@click.option("--exclude", multiple=True, help="Exclude files/directories by pattern (can be specified multiple times)")
@click.option("--config", type=click.Path(exists=False), help="Path to configuration file (optional)")
@click.option(
    "--exit-code",
    is_flag=True,
    help="Return non-zero code when a file is CRITICAL, has a transaction conflict or fails to analyze (for CI)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging on stderr")
def analyze(paths, output_format, output, pg_version, dialect, workers, exclude, config, exit_code, verbose):
    """
    Analyzes the locks taken by migrations in the specified files or directories.

    Directories are walked for .sql, .py, .js and .ts files.
    """
    cli_params = {
        "exclude": exclude,
        "output_format": output_format,
        "pg_version": pg_version,
        "dialect": dialect,
        "workers": workers,
        "verbose": verbose,
        "exit_code": exit_code,
    }
    params = _load_and_apply_config(config, cli_params)
    setup_logging(bool(params["verbose"]))

    output_format = str(params["output_format"]).lower()
    formatter = get_formatter(output_format)

    if not paths:
        click.echo(NO_FILES_SENTINEL)
        sys.exit(0)

    migration_files = find_migration_files(paths, exclude=tuple(params["exclude"] or ()))
    if not migration_files:
        click.echo(NO_FILES_SENTINEL)
        sys.exit(0)

    try:
        results = analyze_files(
            migration_files,
            workers=params["workers"] or DEFAULT_WORKERS,
            dialect=params["dialect"],
            pg_version=params["pg_version"],
        )
    except KeyboardInterrupt:
        click.echo("\n⚠️  Interrupted by user", err=True)
        sys.exit(130)

    failed = sum(1 for result in results if not result.ok)
    if failed:
        click.echo(f"⚠️  {failed} errors occurred during analysis.", err=True)

    status = write_output(formatter.format(results), output)
    if status:
        sys.exit(status)

    sys.exit(1 if params["exit_code"] and should_fail(results) else 0)


def main():
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
