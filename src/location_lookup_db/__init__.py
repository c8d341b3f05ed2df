"""
Location lookup database.

Imports a four-level geographic hierarchy (region, sub-region, area, unit)
from MySQL INSERT dumps into SQLite, remapping legacy integer ids to stable
UUIDs and upserting by natural key so re-runs are idempotent.
"""

__version__ = "0.1.0"

from location_lookup_db.store import (
    LocationsDatabase,
    LocationStore,
    UpsertResult,
    get_locations_database,
)

from location_lookup_db.models import (
    DEFAULT_LEVELS,
    EntityRecord,
    ImportSummary,
    LevelConfig,
    LevelDescriptor,
    LevelSummary,
    LocationLevel,
    LocationRecord,
)

from location_lookup_db.errors import (
    DumpReadError,
    DuplicateRecordError,
    ImportCancelled,
    LocationImportError,
    StoreUnavailableError,
    StoreWriteError,
)

from location_lookup_db.pipeline import CancelToken, LocationImportPipeline

__all__ = [
    # Store
    "LocationsDatabase",
    "LocationStore",
    "UpsertResult",
    "get_locations_database",
    # Models
    "DEFAULT_LEVELS",
    "EntityRecord",
    "ImportSummary",
    "LevelConfig",
    "LevelDescriptor",
    "LevelSummary",
    "LocationLevel",
    "LocationRecord",
    # Errors
    "DumpReadError",
    "DuplicateRecordError",
    "ImportCancelled",
    "LocationImportError",
    "StoreUnavailableError",
    "StoreWriteError",
    # Pipeline
    "CancelToken",
    "LocationImportPipeline",
]
