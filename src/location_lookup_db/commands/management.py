"""Database management commands: status and dump checks."""

import sys
from typing import Optional

import click

from ._common import _configure_logging, _load_levels, _resolve_db_path


@click.command("status")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
def db_status(db_path: Optional[str]):
    """
    Show database status and statistics.

    \b
    Examples:
        location-lookup-db status
        location-lookup-db status --db /path/to/locations.db
    """
    from location_lookup_db.errors import StoreUnavailableError
    from location_lookup_db.store import get_locations_database

    db_path_obj = _resolve_db_path(db_path)

    try:
        database = get_locations_database(db_path=db_path_obj)
        stats = database.get_stats()
    except StoreUnavailableError as e:
        raise click.ClickException(str(e))

    click.echo("\nLocation Database Status")
    click.echo("=" * 40)
    click.echo(f"Database: {db_path_obj}")
    click.echo(f"Database size: {db_path_obj.stat().st_size / 1024 / 1024:.2f} MB")
    click.echo(f"Total locations: {stats['total_locations']:,}")

    if stats["countries"]:
        click.echo("\n=== Countries ===")
        for code, name in stats["countries"].items():
            click.echo(f"  {code}  {name}")

    click.echo("\n=== Locations by Level ===")
    click.echo(f"{'Level':<20} {'Records':>15}")
    click.echo("-" * 36)
    for level, count in stats["by_level"].items():
        click.echo(f"{level:<20} {count:>15,}")


@click.command("check-dump")
@click.argument("dump_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--levels", "levels_path", type=click.Path(exists=True, dir_okay=False), help="JSON level configuration")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_check_dump(dump_path: str, levels_path: Optional[str], as_json: bool, verbose: bool):
    """
    Check a dump for orphans, duplicate codes and parse problems.

    Nothing is written. Exits with status 1 when any level has problems.

    \b
    Examples:
        location-lookup-db check-dump location_lookups.sql
        location-lookup-db check-dump dump.sql.gz --json
    """
    _configure_logging(verbose)

    import json

    from location_lookup_db.errors import DumpReadError
    from location_lookup_db.importers.dump_check import inspect_dump
    from location_lookup_db.importers.sql_dump import SqlDump

    levels = _load_levels(levels_path)
    try:
        dump = SqlDump.from_path(dump_path)
    except DumpReadError as e:
        raise click.ClickException(str(e))

    report = inspect_dump(dump, levels)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in report], indent=2))
    else:
        click.echo(f"\nDump Check: {dump_path}")
        click.echo("=" * 78)
        click.echo(
            f"{'Table':<22} {'Stmts':>6} {'Rows':>9} {'Invalid':>8} {'Orphans':>8} "
            f"{'Dup keys':>9} {'Malformed':>10}"
        )
        click.echo("-" * 78)
        for r in report:
            click.echo(
                f"{r.table:<22} {r.statements:>6,} {r.rows:>9,} {r.invalid_rows:>8,} "
                f"{r.orphan_rows:>8,} {r.duplicate_keys:>9,} {r.malformed_chars + r.unterminated:>10,}"
            )
        for r in report:
            if not r.table_found:
                click.echo(f"\nWarning: no INSERT statements for `{r.table}`")
            if r.orphan_samples:
                ids = ", ".join(str(i) for i in r.orphan_samples)
                click.echo(f"\n{r.table}: orphan legacy ids (first {len(r.orphan_samples)}): {ids}")
            if r.duplicate_samples:
                keys = ", ".join(r.duplicate_samples)
                click.echo(f"\n{r.table}: duplicate parent:code keys (first {len(r.duplicate_samples)}): {keys}")

    if not all(r.clean for r in report):
        sys.exit(1)
