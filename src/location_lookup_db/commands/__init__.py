"""CLI commands package: main click group and command registration."""

import click

from location_lookup_db import __version__


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """
    Manage the location lookup database.

    \b
    Commands:
        import-dump    Import regions, sub-regions, areas and units from a MySQL dump
        reseed-units   Upsert units from delimitation codes (SS-LL-WW-PPP)
        check-dump     Report orphans, duplicate codes and parse problems in a dump
        status         Show database status
        search         Search for a location by name

    \b
    Examples:
        location-lookup-db check-dump location_lookups.sql
        location-lookup-db import-dump location_lookups.sql
        location-lookup-db reseed-units location_lookups.sql
        location-lookup-db status
        location-lookup-db search "Ikeja"
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# Register all commands
from .imports import db_import_dump, db_reseed_units

main.add_command(db_import_dump)
main.add_command(db_reseed_units)

from .management import db_check_dump, db_status

main.add_command(db_status)
main.add_command(db_check_dump)

from .search import db_search

main.add_command(db_search)
