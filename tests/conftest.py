"""
Shared test fixtures for location-lookup-db.

Provides fresh temp databases, an in-memory fake store with failure
injection, and a small sample dump. Resets module-level connection caches
between tests.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

import pytest

from location_lookup_db.errors import DuplicateRecordError, StoreUnavailableError, StoreWriteError
from location_lookup_db.importers.sql_dump import SqlDump
from location_lookup_db.models import LocationLevel
from location_lookup_db.store import LocationsDatabase, UpsertResult


# ---------------------------------------------------------------------------
# Singleton reset (autouse) -- clears module-level caches every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_module_singletons():
    """Close and clear shared connections so tests are fully isolated."""
    import location_lookup_db.store as _store

    yield

    for conn in list(_store._shared_connections.values()):
        conn.close()
    for conn in list(_store._shared_readonly_connections.values()):
        conn.close()
    _store._shared_connections.clear()
    _store._shared_readonly_connections.clear()
    _store._locations_database_instances.clear()

    # CLI commands call logging.basicConfig(force=True) against CliRunner's stderr
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


# ---------------------------------------------------------------------------
# Database path & instances
# ---------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Return a path to a fresh temporary database file."""
    return tmp_path / "test_locations.db"


@pytest.fixture
def locations_db(db_path: Path) -> LocationsDatabase:
    """Writable LocationsDatabase backed by the temp DB."""
    return LocationsDatabase(db_path, readonly=False)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class FakeStore:
    """
    Dict-backed LocationStore.

    Failure injection:
      - codes in ``fail_codes`` raise StoreWriteError
      - codes in ``duplicate_codes`` raise DuplicateRecordError when the record exists
      - ``unavailable = True`` makes every upsert raise StoreUnavailableError
    """

    def __init__(self):
        self.countries: dict[str, str] = {}
        self.records: dict[tuple[str, str, str], dict] = {}
        self.fail_codes: set[str] = set()
        self.duplicate_codes: set[str] = set()
        self.unavailable = False
        self.commits = 0
        self.upserts: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()
        self._next_id = 0

    def ensure_country(self, code: str, name: Optional[str] = None) -> str:
        return self.countries.setdefault(code, f"country-{code}")

    def upsert(self, level, parent_id, name, code, extra=None) -> UpsertResult:
        with self._lock:
            self.upserts.append((level.value, parent_id, code))
            if self.unavailable:
                raise StoreUnavailableError("fake store is down")
            if code in self.fail_codes:
                raise StoreWriteError(f"cannot write {code}")

            key = (level.value, parent_id, code)
            existing = self.records.get(key)
            if existing is not None and code in self.duplicate_codes:
                raise DuplicateRecordError(existing["id"])
            if existing is None:
                self._next_id += 1
                record_id = f"{level.value}-{self._next_id}"
                self.records[key] = {"id": record_id, "name": name, "extra": dict(extra or {})}
                return UpsertResult(record_id, created=True, changed=True)

            new_extra = existing["extra"] if extra is None else {**existing["extra"], **extra}
            changed = existing["name"] != name or new_extra != existing["extra"]
            existing["name"] = name
            existing["extra"] = new_extra
            return UpsertResult(existing["id"], created=False, changed=changed)

    def find_id(self, level, parent_id, code) -> Optional[str]:
        record = self.records.get((level.value, parent_id, code))
        return record["id"] if record else None

    def commit(self) -> None:
        self.commits += 1

    def by_level(self, level: LocationLevel) -> list[dict]:
        return [
            {"parent_id": key[1], "code": key[2], **value}
            for key, value in self.records.items()
            if key[0] == level.value
        ]

    def ids(self) -> set[str]:
        return {value["id"] for value in self.records.values()} | set(self.countries.values())


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


# ---------------------------------------------------------------------------
# Sample dump
# ---------------------------------------------------------------------------

SAMPLE_DUMP = r"""-- MySQL dump 10.13
/*!40101 SET NAMES utf8mb4 */;

DROP TABLE IF EXISTS `states`;
CREATE TABLE `states` (
  `id` int NOT NULL AUTO_INCREMENT,
  `name` varchar(100) NOT NULL,
  `abbreviation` varchar(10) DEFAULT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB;

INSERT INTO `states` (`id`, `name`, `abbreviation`) VALUES (1,'Abia','01'),(2,'Lagos State','24');

INSERT INTO `local_governments` (`id`, `state_id`, `name`, `code`) VALUES
(1,1,'Aba North','01'),
(2,1,'Aba South','02'),
(3,2,'Ikeja','10'),
(4,99,'Ghost LGA','77');

INSERT INTO `registration_areas` (`id`, `lga_id`, `name`, `code`) VALUES (1,1,'Eziama','01'),(2,3,'O\'Brien Ward','02'),(3,3,'Alausa; Central','03');

INSERT INTO `polling_units` (`id`, `ward_id`, `name`, `code`, `delimitation`) VALUES (1,1,'Eziama Primary School','001','01-01-01-001'),(2,2,'Town Hall, Ikeja','001','24-10-02-001'),(3,3,'Market Square','002',NULL);

INSERT INTO `pu_data` VALUES (1,1,1,1,'01-01-01-001','ABIA','ABA NORTH','EZIAMA','Eziama Primary School (Reseeded)'),(2,2,3,2,'24-10-02-005','LAGOS','IKEJA','O\'BRIEN','New Unit'),(3,0,0,0,'1-01-01-002','ABIA','ABA NORTH','EZIAMA','Padded Region Unit'),(4,0,0,0,'99-01-01-001','X','Y','Z','Orphan Unit'),(5,0,0,0,'bad','X','Y','Z','Bad Delimitation'),(6,0,0,0,NULL,'X','Y','Z','No Delimitation');
"""


@pytest.fixture
def sample_dump_text() -> str:
    return SAMPLE_DUMP


@pytest.fixture
def sample_dump() -> SqlDump:
    return SqlDump(SAMPLE_DUMP, source="sample.sql")


@pytest.fixture
def sample_dump_path(tmp_path: Path) -> Path:
    path = tmp_path / "location_lookups.sql"
    path.write_text(SAMPLE_DUMP, encoding="utf-8")
    return path
