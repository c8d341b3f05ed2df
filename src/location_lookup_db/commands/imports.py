"""Database import commands: full hierarchy import and unit reseed."""

import sys
from typing import Optional

import click

from ._common import _configure_logging, _echo_summary, _load_levels, _resolve_db_path


def _progress(level, written: int, failed: int) -> None:
    click.echo(f"\r  {level.label}: {written:,} written, {failed:,} failed...", nl=False, err=True)
    sys.stderr.flush()


@click.command("import-dump")
@click.argument("dump_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--db", "db_path", type=click.Path(), help="Database path (default: ~/.cache/location-lookup-db/locations.db)")
@click.option("--country", default="NG", show_default=True, help="ISO alpha-2 code of the root country")
@click.option("--levels", "levels_path", type=click.Path(exists=True, dir_okay=False), help="JSON level configuration")
@click.option("--batch-size", type=click.IntRange(min=1), default=500, help="Records per committed batch (default: 500)")
@click.option("--workers", type=click.IntRange(min=1), default=1, help="Parallel writers within a batch (default: 1)")
@click.option("--timeout", type=float, help="Stop between batches after this many seconds")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_import_dump(
    dump_path: str,
    db_path: Optional[str],
    country: str,
    levels_path: Optional[str],
    batch_size: int,
    workers: int,
    timeout: Optional[float],
    as_json: bool,
    verbose: bool,
):
    """
    Import regions, sub-regions, areas and units from a MySQL dump.

    Runs all four levels in order. Re-running against the same dump is safe:
    records are matched by (parent, code) and updated in place.

    \b
    Examples:
        location-lookup-db import-dump location_lookups.sql
        location-lookup-db import-dump dump.sql.gz --workers 4 --batch-size 1000
        location-lookup-db import-dump dump.sql --levels levels.json --json
    """
    _configure_logging(verbose)

    from location_lookup_db.errors import LocationImportError
    from location_lookup_db.pipeline import CancelToken, LocationImportPipeline
    from location_lookup_db.store import LocationsDatabase, close_shared_connection

    levels = _load_levels(levels_path)
    db_path_obj = _resolve_db_path(db_path)
    cancel_token = CancelToken.from_timeout(timeout)

    click.echo(f"Importing locations from {dump_path} into {db_path_obj}...", err=True)

    # readonly=False for import operations
    database = LocationsDatabase(db_path=db_path_obj, readonly=False)
    pipeline = LocationImportPipeline(
        database,
        country_code=country,
        levels=levels,
        batch_size=batch_size,
        max_workers=workers,
        cancel_token=cancel_token,
        progress_callback=None if as_json else _progress,
    )

    try:
        summary = pipeline.run(dump_path)
    except KeyboardInterrupt:
        click.echo("\n  Interrupted! Committed batches are kept; re-run to finish.", err=True)
        sys.exit(1)
    except (LocationImportError, ValueError) as e:
        raise click.ClickException(str(e))
    finally:
        database.close()
        close_shared_connection(db_path_obj)

    click.echo("", err=True)  # Newline after progress counter
    if as_json:
        click.echo(summary.model_dump_json(indent=2))
    else:
        _echo_summary(summary, "Location Import Summary")

    if not summary.success:
        sys.exit(1)


@click.command("reseed-units")
@click.argument("dump_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("--country", default="NG", show_default=True, help="ISO alpha-2 code of the root country")
@click.option("--table", default="pu_data", show_default=True, help="Table holding delimitation rows")
@click.option("--batch-size", type=click.IntRange(min=1), default=500, help="Records per committed batch (default: 500)")
@click.option("--workers", type=click.IntRange(min=1), default=1, help="Parallel writers within a batch (default: 1)")
@click.option("--timeout", type=float, help="Stop between batches after this many seconds")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_reseed_units(
    dump_path: str,
    db_path: Optional[str],
    country: str,
    table: str,
    batch_size: int,
    workers: int,
    timeout: Optional[float],
    as_json: bool,
    verbose: bool,
):
    """
    Upsert units from delimitation codes (SS-LL-WW-PPP).

    Parents are resolved by code against regions, sub-regions and areas
    already in the database, so run import-dump first. Existing units are
    updated, never deleted.

    \b
    Examples:
        location-lookup-db reseed-units location_lookups.sql
        location-lookup-db reseed-units dump.sql --table pu_data --json
    """
    _configure_logging(verbose)

    from location_lookup_db.errors import LocationImportError
    from location_lookup_db.importers.sql_dump import SqlDump
    from location_lookup_db.models import DelimitationDescriptor
    from location_lookup_db.pipeline import CancelToken, LocationImportPipeline
    from location_lookup_db.store import LocationsDatabase, close_shared_connection

    db_path_obj = _resolve_db_path(db_path)
    click.echo(f"Reseeding units from {dump_path} into {db_path_obj}...", err=True)

    database = LocationsDatabase(db_path=db_path_obj, readonly=False)
    pipeline = LocationImportPipeline(
        database,
        country_code=country,
        batch_size=batch_size,
        max_workers=workers,
        cancel_token=CancelToken.from_timeout(timeout),
        progress_callback=None if as_json else _progress,
    )

    try:
        dump = SqlDump.from_path(dump_path)
        summary = pipeline.reseed_units(dump, DelimitationDescriptor(table=table))
    except KeyboardInterrupt:
        click.echo("\n  Interrupted! Committed batches are kept; re-run to finish.", err=True)
        sys.exit(1)
    except (LocationImportError, ValueError) as e:
        raise click.ClickException(str(e))
    finally:
        database.close()
        close_shared_connection(db_path_obj)

    click.echo("", err=True)
    if as_json:
        click.echo(summary.model_dump_json(indent=2))
    else:
        _echo_summary(summary, "Unit Reseed Summary")

    if not summary.success:
        sys.exit(1)
