"""Shared utilities used across CLI command modules."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from location_lookup_db.models import DEFAULT_LEVELS, ImportSummary, LevelConfig, LevelDescriptor


def _configure_logging(verbose: bool) -> None:
    """Configure logging for the location database."""
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    # Set level for location_lookup_db loggers
    for logger_name in [
        "location_lookup_db",
        "location_lookup_db.store",
        "location_lookup_db.pipeline",
        "location_lookup_db.importers",
    ]:
        logging.getLogger(logger_name).setLevel(level)


def _resolve_db_path(db_path: Optional[str] = None) -> Path:
    """Resolve the database path from an explicit --db value or the default cache location."""
    if db_path is not None:
        return Path(db_path)
    from location_lookup_db.store import DEFAULT_DB_PATH
    return DEFAULT_DB_PATH


def _load_levels(levels_path: Optional[str]) -> list[LevelDescriptor]:
    """Load a --levels JSON file, or return the default level layout."""
    if levels_path is None:
        return list(DEFAULT_LEVELS)
    try:
        with open(levels_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return LevelConfig.model_validate(data).levels
    except (OSError, json.JSONDecodeError) as e:
        raise click.BadParameter(f"Cannot read level configuration: {e}", param_hint="--levels")
    except ValidationError as e:
        raise click.BadParameter(f"Invalid level configuration:\n{e}", param_hint="--levels")


def _echo_summary(summary: ImportSummary, title: str) -> None:
    """Print per-level counts as a table."""
    click.echo(f"\n{title}")
    click.echo("=" * 88)
    click.echo(
        f"{'Level':<12} {'Table':<20} {'Seen':>9} {'Imported':>9} {'New':>8} "
        f"{'Updated':>8} {'Orphan':>7} {'Invalid':>7} {'Error':>6}"
    )
    click.echo("-" * 88)
    for s in summary.levels:
        click.echo(
            f"{s.level.label:<12} {s.table:<20} {s.seen:>9,} {s.imported:>9,} {s.created:>8,} "
            f"{s.updated:>8,} {s.skipped_orphan:>7,} {s.skipped_invalid:>7,} {s.skipped_error:>6,}"
        )

    duplicates = sum(s.duplicate_keys for s in summary.levels)
    malformed = sum(s.malformed_chars + s.unterminated for s in summary.levels)
    if duplicates:
        click.echo(f"\nDuplicate natural keys (last row wins): {duplicates:,}")
    if malformed:
        click.echo(f"Malformed characters / unterminated values: {malformed:,}")
    for warning in summary.warnings:
        click.echo(f"Warning: {warning}")

    status = "cancelled" if summary.cancelled else ("ok" if summary.success else "failed")
    click.echo(f"\nStatus: {status}")
