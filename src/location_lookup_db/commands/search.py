"""Database search command."""

from typing import Optional

import click

from ._common import _resolve_db_path

LEVEL_CHOICES = ["region", "sub_region", "area", "unit"]


@click.command("search")
@click.argument("query")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("--level", type=click.Choice(LEVEL_CHOICES), help="Only search one hierarchy level")
@click.option("--limit", default=10, help="Maximum results to return")
def db_search(query: str, db_path: Optional[str], level: Optional[str], limit: int):
    """
    Search for locations by name.

    \b
    Examples:
        location-lookup-db search "Ikeja"
        location-lookup-db search "Abia" --level region
        location-lookup-db search "primary school" --level unit --limit 25
    """
    from location_lookup_db.errors import StoreUnavailableError
    from location_lookup_db.models import LocationLevel
    from location_lookup_db.store import get_locations_database

    try:
        locations_db = get_locations_database(_resolve_db_path(db_path))
        results = locations_db.search(
            query, top_k=limit, level=LocationLevel(level) if level else None
        )
    except StoreUnavailableError as e:
        raise click.ClickException(str(e))

    if not results:
        click.echo(f"No locations found matching '{query}'")
        return

    click.echo(f"Found {len(results)} location(s) matching '{query}':")
    for loc_id, name, score in results:
        record = locations_db.get_by_id(loc_id)
        level_label = record.level.label if record else "?"
        code = record.code if record else "?"
        click.echo(f"  [{loc_id}] {name} ({level_label} {code}, score: {score:.2f})")
