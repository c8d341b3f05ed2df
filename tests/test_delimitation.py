"""Tests for DelimitationImporter (unit reseed from SS-LL-WW-PPP codes)."""

import pytest

from location_lookup_db.importers.delimitation import DelimitationImporter
from location_lookup_db.models import DelimitationDescriptor, LevelSummary, LocationLevel


@pytest.fixture
def seeded_store(fake_store):
    """Fake store with one region / sub-region / area chain: 01-05-03."""
    country_id = fake_store.ensure_country("NG")
    region = fake_store.upsert(LocationLevel.REGION, country_id, "Abia", "01")
    sub_region = fake_store.upsert(LocationLevel.SUB_REGION, region.id, "Aba North", "05")
    fake_store.upsert(LocationLevel.AREA, sub_region.id, "Eziama", "03")
    return fake_store


@pytest.fixture
def importer(seeded_store) -> DelimitationImporter:
    return DelimitationImporter(seeded_store, seeded_store.ensure_country("NG"), batch_size=2)


def _row(legacy_id, delimitation, name):
    return [legacy_id, "0", "0", "0", delimitation, "STATE", "LGA", "WARD", name]


def _summary() -> LevelSummary:
    return LevelSummary(level=LocationLevel.UNIT, table="pu_data")


class TestResolveArea:
    def test_full_chain(self, importer, seeded_store):
        area_id = importer.resolve_area("01", "05", "03")
        assert area_id is not None
        assert area_id in seeded_store.ids()

    def test_zero_padded_region(self, importer):
        assert importer.resolve_area("1", "05", "03") == importer.resolve_area("01", "05", "03")

    def test_missing_links(self, importer):
        assert importer.resolve_area("02", "05", "03") is None
        assert importer.resolve_area("01", "06", "03") is None
        assert importer.resolve_area("01", "05", "04") is None


class TestImportRows:
    def test_units_created_under_area(self, importer, seeded_store):
        rows = [_row("1", "01-05-03-001", "School"), _row("2", "1-05-03-002", "Hall")]
        summary = importer.import_rows(rows, _summary())

        assert summary.created == 2
        area_id = importer.resolve_area("01", "05", "03")
        units = seeded_store.by_level(LocationLevel.UNIT)
        assert {u["code"] for u in units} == {"001", "002"}
        assert all(u["parent_id"] == area_id for u in units)
        assert {u["extra"]["delimitation"] for u in units} == {"01-05-03-001", "1-05-03-002"}

    def test_invalid_and_orphan_rows(self, importer, seeded_store):
        rows = [
            _row("1", None, "No Delimitation"),
            _row("2", "01-05-03", "Short"),
            _row("3", "01-05-03-004", None),
            _row(None, "01-05-03-005", "No Id"),
            _row("5", "09-05-03-001", "Orphan"),
        ]
        summary = importer.import_rows(rows, _summary())
        assert summary.seen == 5
        assert summary.skipped_invalid == 4
        assert summary.skipped_orphan == 1
        assert seeded_store.by_level(LocationLevel.UNIT) == []

    def test_duplicate_delimitation_last_wins(self, importer, seeded_store):
        rows = [_row("1", "01-05-03-001", "First"), _row("2", "01-05-03-001", "Second")]
        summary = importer.import_rows(rows, _summary())
        assert summary.duplicate_keys == 1
        assert seeded_store.by_level(LocationLevel.UNIT)[0]["name"] == "Second"

    def test_custom_columns(self, seeded_store):
        descriptor = DelimitationDescriptor(table="units_flat", id_column=0, delimitation_column=1, name_column=2)
        importer = DelimitationImporter(seeded_store, seeded_store.ensure_country("NG"), descriptor=descriptor)
        summary = importer.import_rows([["7", "01-05-03-010", "Clinic"]], _summary())
        assert summary.created == 1
