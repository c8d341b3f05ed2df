"""Tests for IdentifierMap and IdentifierRemapper."""

import pytest

from location_lookup_db.importers.identifier_map import IdentifierMap, IdentifierRemapper
from location_lookup_db.models import LocationLevel


class TestIdentifierMap:
    def test_put_and_get(self):
        id_map = IdentifierMap(LocationLevel.REGION)
        id_map.put(1, "uuid-1")
        assert id_map.get(1) == "uuid-1"
        assert id_map.get(2) is None
        assert 1 in id_map
        assert len(id_map) == 1

    def test_put_overwrites_until_frozen(self):
        id_map = IdentifierMap(LocationLevel.AREA)
        id_map.put(1, "a")
        id_map.put(1, "b")
        assert id_map.get(1) == "b"

    def test_frozen_map_rejects_writes(self):
        id_map = IdentifierMap(LocationLevel.AREA)
        id_map.put(1, "a")
        id_map.freeze()
        assert id_map.frozen
        with pytest.raises(RuntimeError):
            id_map.put(2, "b")
        assert id_map.get(1) == "a"


class TestIdentifierRemapper:
    def test_levels_are_separate(self):
        remapper = IdentifierRemapper()
        remapper.put(LocationLevel.REGION, 1, "region-1")
        remapper.put(LocationLevel.SUB_REGION, 1, "sub-1")
        assert remapper.get(LocationLevel.REGION, 1) == "region-1"
        assert remapper.get(LocationLevel.SUB_REGION, 1) == "sub-1"
        assert remapper.get(LocationLevel.AREA, 1) is None

    def test_complete_freezes_only_that_level(self):
        remapper = IdentifierRemapper()
        remapper.complete(LocationLevel.REGION)
        assert remapper.is_complete(LocationLevel.REGION)
        assert not remapper.is_complete(LocationLevel.SUB_REGION)
        with pytest.raises(RuntimeError):
            remapper.put(LocationLevel.REGION, 5, "x")
        remapper.put(LocationLevel.SUB_REGION, 5, "y")

    def test_map_for(self):
        remapper = IdentifierRemapper()
        remapper.put(LocationLevel.UNIT, 3, "u3")
        assert remapper.map_for(LocationLevel.UNIT).get(3) == "u3"
