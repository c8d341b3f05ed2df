"""
Legacy id to new id bookkeeping, one map per hierarchy level.

Each level's map is filled while that level imports and frozen when it
finishes; the next level only reads it to resolve parent links.
"""

import logging
from typing import Optional

from ..models import LEVEL_ORDER, LocationLevel

logger = logging.getLogger(__name__)


class IdentifierMap:
    """Mapping of legacy integer id -> new stable id for a single level."""

    def __init__(self, level: LocationLevel):
        self.level = level
        self._ids: dict[int, str] = {}
        self._frozen = False

    def put(self, legacy_id: int, new_id: str) -> None:
        if self._frozen:
            raise RuntimeError(f"Identifier map for {self.level.value} is frozen")
        self._ids[legacy_id] = new_id

    def get(self, legacy_id: int) -> Optional[str]:
        return self._ids.get(legacy_id)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, legacy_id: object) -> bool:
        return legacy_id in self._ids


class IdentifierRemapper:
    """
    Holds the per-level identifier maps for one pipeline run.

    The remapper does not enforce level ordering itself; the pipeline only
    asks for a parent level's ids after that level has been completed.
    """

    def __init__(self):
        self._maps: dict[LocationLevel, IdentifierMap] = {
            level: IdentifierMap(level) for level in LEVEL_ORDER
        }

    def map_for(self, level: LocationLevel) -> IdentifierMap:
        return self._maps[level]

    def put(self, level: LocationLevel, legacy_id: int, new_id: str) -> None:
        self._maps[level].put(legacy_id, new_id)

    def get(self, level: LocationLevel, legacy_id: int) -> Optional[str]:
        return self._maps[level].get(legacy_id)

    def complete(self, level: LocationLevel) -> None:
        """Freeze a level's map once every row of that level has been written."""
        id_map = self._maps[level]
        id_map.freeze()
        logger.debug(f"Completed {level.value} identifier map with {len(id_map):,} entries")

    def is_complete(self, level: LocationLevel) -> bool:
        return self._maps[level].frozen
