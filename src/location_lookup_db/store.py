"""
SQLite store for the location hierarchy.

One ``locations`` table holds all four levels. Every record hangs off a
parent (regions hang off a row in ``countries``) and is unique on
``(level, parent_id, code)``, which is what makes re-imports idempotent.
Record ids are UUID4 strings assigned on first insert and never changed.
"""

import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Iterator, NamedTuple, Optional, Protocol

import pycountry

from .errors import StoreUnavailableError, StoreWriteError
from .importers.import_utils import normalize_name
from .models import LEVEL_ORDER, LocationLevel, LocationRecord

logger = logging.getLogger(__name__)

# Default database location
DEFAULT_DB_PATH = Path.home() / ".cache" / "location-lookup-db" / "locations.db"

# Module-level shared connections by path
_shared_connections: dict[str, sqlite3.Connection] = {}

# Module-level shared read-only connections
_shared_readonly_connections: dict[str, sqlite3.Connection] = {}

# Module-level singleton for LocationsDatabase (read side of the CLI)
_locations_database_instances: dict[str, "LocationsDatabase"] = {}


class UpsertResult(NamedTuple):
    """Outcome of one upsert: the record id and whether anything was written."""

    id: str
    created: bool
    changed: bool


class LocationStore(Protocol):
    """What the import pipeline needs from a store."""

    def ensure_country(self, code: str, name: Optional[str] = None) -> str: ...

    def upsert(
        self,
        level: LocationLevel,
        parent_id: str,
        name: str,
        code: str,
        extra: Optional[dict[str, str]] = None,
    ) -> UpsertResult: ...

    def find_id(self, level: LocationLevel, parent_id: str, code: str) -> Optional[str]: ...

    def commit(self) -> None: ...


def _apply_pragmas(conn: sqlite3.Connection, readonly: bool) -> None:
    """Apply performance PRAGMAs to a SQLite connection.

    The hierarchy is small (a few hundred thousand rows), so a 64MB page
    cache keeps every natural-key lookup in memory during an import.
    """
    cache_kb = 64 * 1024  # 64 MB

    conn.execute(f"PRAGMA cache_size = -{cache_kb}")
    conn.execute("PRAGMA temp_store = MEMORY")
    logger.debug(f"Applied PRAGMAs: cache_size={cache_kb // 1024}MB, temp_store=MEMORY")

    if not readonly:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        logger.debug("Enabled WAL journal mode")


def _create_tables(conn: sqlite3.Connection) -> None:
    """Create the countries and locations tables (idempotent)."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS countries (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id TEXT PRIMARY KEY,
            level TEXT NOT NULL,
            parent_id TEXT NOT NULL,
            name TEXT NOT NULL,
            name_normalized TEXT NOT NULL,
            code TEXT NOT NULL,
            record TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(level, parent_id, code)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_locations_parent_id ON locations(parent_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_locations_name_normalized ON locations(name_normalized)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_locations_level ON locations(level)")
    conn.commit()


def _get_shared_connection(db_path: Path, readonly: bool = False) -> sqlite3.Connection:
    """Get or create a shared database connection for the given path."""
    path_key = str(db_path)

    # Use separate pools for read-only vs read-write connections
    if readonly:
        if path_key not in _shared_readonly_connections:
            if not db_path.exists():
                raise StoreUnavailableError(f"Database not found: {db_path}")
            try:
                # Open in immutable mode for read-only access (avoids locking)
                conn = sqlite3.connect(f"file:{db_path}?immutable=1", uri=True)
                conn.row_factory = sqlite3.Row
                _apply_pragmas(conn, readonly=True)
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"Cannot open database {db_path}: {e}") from e

            _shared_readonly_connections[path_key] = conn
            logger.debug(f"Created shared read-only database connection for {path_key}")

        return _shared_readonly_connections[path_key]

    if path_key not in _shared_connections:
        try:
            # Ensure directory exists
            db_path.parent.mkdir(parents=True, exist_ok=True)

            # Batches may be written from a small worker pool; access is serialized by a lock
            conn = sqlite3.connect(str(db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            _apply_pragmas(conn, readonly=False)
            _create_tables(conn)
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailableError(f"Cannot open database {db_path}: {e}") from e

        _shared_connections[path_key] = conn
        logger.debug(f"Created shared database connection for {path_key}")

    return _shared_connections[path_key]


def close_shared_connection(db_path: Optional[Path] = None) -> None:
    """Close a shared database connection."""
    path_key = str(db_path or DEFAULT_DB_PATH)
    if path_key in _shared_connections:
        _shared_connections[path_key].close()
        del _shared_connections[path_key]
        logger.debug(f"Closed shared database connection for {path_key}")
    if path_key in _shared_readonly_connections:
        _shared_readonly_connections[path_key].close()
        del _shared_readonly_connections[path_key]
        logger.debug(f"Closed shared read-only database connection for {path_key}")


def get_locations_database(db_path: Optional[str | Path] = None, readonly: bool = True) -> "LocationsDatabase":
    """
    Get a singleton LocationsDatabase instance for the given path.

    Args:
        db_path: Path to database file
        readonly: If True (default), open in read-only mode.

    Returns:
        Shared LocationsDatabase instance (readonly by default)
    """
    path_key = str(db_path or DEFAULT_DB_PATH) + (":ro" if readonly else ":rw")
    if path_key not in _locations_database_instances:
        logger.debug(f"Creating new LocationsDatabase instance for {path_key}")
        _locations_database_instances[path_key] = LocationsDatabase(db_path=db_path, readonly=readonly)
    return _locations_database_instances[path_key]


class LocationsDatabase:
    """
    SQLite database for the region / sub-region / area / unit hierarchy.

    Implements ``LocationStore`` for the importers and offers lookups,
    statistics and name search for the CLI.
    """

    def __init__(self, db_path: Optional[str | Path] = None, readonly: bool = True):
        """
        Initialize the locations database.

        Args:
            db_path: Path to database file (creates if not exists)
            readonly: If True (default), open in read-only mode (avoids locking).
        """
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._readonly = readonly
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._country_cache: dict[str, str] = {}  # alpha_2 -> country id

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        """Get or create database connection using shared connection pool."""
        if self._conn is not None:
            return self._conn
        self._conn = _get_shared_connection(self._db_path, readonly=self._readonly)
        return self._conn

    def _require_writable(self) -> None:
        if self._readonly:
            raise StoreWriteError(f"Database {self._db_path} was opened read-only")

    def close(self) -> None:
        """Clear connection reference."""
        self._conn = None

    # -------------------------------------------------------------------------
    # LocationStore
    # -------------------------------------------------------------------------

    def ensure_country(self, code: str, name: Optional[str] = None) -> str:
        """
        Get or create the root country record.

        Args:
            code: ISO 3166 alpha-2 code (e.g. "NG")
            name: Display name; resolved through pycountry when omitted

        Returns:
            Country id
        """
        code = code.strip().upper()
        if code in self._country_cache:
            return self._country_cache[code]

        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT id FROM countries WHERE code = ?", (code,)).fetchone()
                if row:
                    self._country_cache[code] = row["id"]
                    return row["id"]

                self._require_writable()
                if not name:
                    country = pycountry.countries.get(alpha_2=code)
                    if country is None:
                        raise ValueError(f"Unknown country code: {code}")
                    name = country.name

                country_id = str(uuid.uuid4())
                conn.execute(
                    "INSERT INTO countries (id, code, name) VALUES (?, ?, ?)",
                    (country_id, code, name),
                )
                conn.commit()
            except sqlite3.OperationalError as e:
                raise StoreUnavailableError(f"Store unavailable: {e}") from e

        logger.info(f"Created country {name} ({code})")
        self._country_cache[code] = country_id
        return country_id

    def upsert(
        self,
        level: LocationLevel,
        parent_id: str,
        name: str,
        code: str,
        extra: Optional[dict[str, str]] = None,
    ) -> UpsertResult:
        """
        Insert a record, or update name/extra fields of the existing record
        with the same ``(level, parent_id, code)``.

        Not committed; call ``commit()`` at the end of a batch.

        Raises:
            StoreWriteError: If this record cannot be written
            StoreUnavailableError: If the database stopped responding
        """
        self._require_writable()
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT id, name, record FROM locations WHERE level = ? AND parent_id = ? AND code = ?",
                    (level.value, parent_id, code),
                ).fetchone()

                if row is None:
                    location_id = str(uuid.uuid4())
                    conn.execute(
                        """
                        INSERT INTO locations (id, level, parent_id, name, name_normalized, code, record)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            location_id,
                            level.value,
                            parent_id,
                            name,
                            normalize_name(name),
                            code,
                            json.dumps(extra or {}, sort_keys=True),
                        ),
                    )
                    return UpsertResult(location_id, created=True, changed=True)

                stored_record = json.loads(row["record"]) if row["record"] else {}
                new_record = stored_record if extra is None else {**stored_record, **extra}
                if row["name"] == name and new_record == stored_record:
                    return UpsertResult(row["id"], created=False, changed=False)

                conn.execute(
                    """
                    UPDATE locations
                    SET name = ?, name_normalized = ?, record = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (name, normalize_name(name), json.dumps(new_record, sort_keys=True), row["id"]),
                )
                return UpsertResult(row["id"], created=False, changed=True)
            except sqlite3.IntegrityError as e:
                raise StoreWriteError(f"Failed to write {level.value} {code!r} under {parent_id}: {e}") from e
            except sqlite3.OperationalError as e:
                raise StoreUnavailableError(f"Store unavailable: {e}") from e

    def find_id(self, level: LocationLevel, parent_id: str, code: str) -> Optional[str]:
        """Id of the record with this natural key, or None."""
        with self._lock:
            conn = self._connect()
            row = conn.execute(
                "SELECT id FROM locations WHERE level = ? AND parent_id = ? AND code = ?",
                (level.value, parent_id, code),
            ).fetchone()
        return row["id"] if row else None

    def commit(self) -> None:
        if self._readonly:
            return
        with self._lock:
            try:
                self._connect().commit()
            except sqlite3.OperationalError as e:
                raise StoreUnavailableError(f"Commit failed: {e}") from e

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> LocationRecord:
        return LocationRecord(
            id=row["id"],
            level=LocationLevel(row["level"]),
            parent_id=row["parent_id"],
            name=row["name"],
            code=row["code"],
            record=json.loads(row["record"]) if row["record"] else {},
        )

    def get_by_id(self, location_id: str) -> Optional[LocationRecord]:
        """Get a location record by ID."""
        conn = self._connect()
        row = conn.execute(
            "SELECT id, level, parent_id, name, code, record FROM locations WHERE id = ?",
            (location_id,),
        ).fetchone()
        if row:
            return self._row_to_record(row)
        return None

    def iter_records(
        self,
        level: Optional[LocationLevel] = None,
        parent_id: Optional[str] = None,
    ) -> Iterator[LocationRecord]:
        """
        Iterate over stored records, optionally filtered by level and parent.

        Yields records ordered by level, then name.
        """
        conn = self._connect()
        clauses = []
        params: list[Any] = []
        if level is not None:
            clauses.append("level = ?")
            params.append(level.value)
        if parent_id is not None:
            clauses.append("parent_id = ?")
            params.append(parent_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = conn.execute(
            f"SELECT id, level, parent_id, name, code, record FROM locations {where} ORDER BY level, name",
            params,
        )
        for row in cursor:
            yield self._row_to_record(row)

    def count(self, level: Optional[LocationLevel] = None) -> int:
        conn = self._connect()
        if level is None:
            return conn.execute("SELECT COUNT(*) FROM locations").fetchone()[0]
        return conn.execute("SELECT COUNT(*) FROM locations WHERE level = ?", (level.value,)).fetchone()[0]

    def search(
        self,
        query: str,
        top_k: int = 10,
        level: Optional[LocationLevel] = None,
    ) -> list[tuple[str, str, float]]:
        """
        Search for locations by name.

        Args:
            query: Search query
            top_k: Maximum results to return
            level: Optional filter by hierarchy level

        Returns:
            List of (location_id, location_name, score) tuples
        """
        conn = self._connect()
        query_normalized = normalize_name(query)
        if not query_normalized:
            return []

        if level is not None:
            cursor = conn.execute(
                """
                SELECT id, name FROM locations
                WHERE name_normalized LIKE ? AND level = ?
                ORDER BY length(name)
                LIMIT ?
                """,
                (f"%{query_normalized}%", level.value, top_k),
            )
        else:
            cursor = conn.execute(
                """
                SELECT id, name FROM locations
                WHERE name_normalized LIKE ?
                ORDER BY length(name)
                LIMIT ?
                """,
                (f"%{query_normalized}%", top_k),
            )

        results = []
        for row in cursor:
            name_normalized = normalize_name(row["name"])
            if query_normalized == name_normalized:
                score = 1.0
            elif name_normalized.startswith(query_normalized):
                score = 0.9
            else:
                score = 0.7
            results.append((row["id"], row["name"], score))

        results.sort(key=lambda r: -r[2])
        return results

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about the countries and locations tables."""
        conn = self._connect()

        total = conn.execute("SELECT COUNT(*) FROM locations").fetchone()[0]

        countries: dict[str, str] = {}
        for row in conn.execute("SELECT code, name FROM countries ORDER BY code"):
            countries[row["code"]] = row["name"]

        # Count by level, in hierarchy order
        by_level: dict[str, int] = {level.value: 0 for level in LEVEL_ORDER}
        for row in conn.execute("SELECT level, COUNT(*) AS cnt FROM locations GROUP BY level"):
            by_level[row["level"]] = row["cnt"]

        return {
            "total_locations": total,
            "countries": countries,
            "by_level": by_level,
        }
