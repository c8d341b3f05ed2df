"""
Unit reseed from delimitation codes.

Some exports carry a flat ``pu_data`` table whose rows describe each unit
by its full delimitation code ``SS-LL-WW-PPP`` (region, sub-region, area,
unit) instead of by legacy parent ids::

    (id, rid, lid, sid, delimitation, region name, sub-region name, area name, unit name)

The parent chain is resolved by natural key against records already in the
store, so this runs after a full hierarchy import. Existing units are
updated in place, never deleted.
"""

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from ..models import (
    DecodedRow,
    DelimitationDescriptor,
    EntityRecord,
    LevelSummary,
    LocationLevel,
)
from .batch_writer import DEFAULT_BATCH_SIZE, BatchWriter
from .import_utils import clean_text, column, parse_legacy_id, split_delimitation

if TYPE_CHECKING:
    from ..pipeline import CancelToken
    from ..store import LocationStore, UpsertResult

logger = logging.getLogger(__name__)


class DelimitationImporter:
    """Upsert units whose parents are given by a delimitation code."""

    def __init__(
        self,
        store: "LocationStore",
        country_id: str,
        descriptor: Optional[DelimitationDescriptor] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 1,
        cancel_token: Optional["CancelToken"] = None,
        progress_callback: Optional[Callable[[LocationLevel, int, int], None]] = None,
    ):
        self.store = store
        self.country_id = country_id
        self.descriptor = descriptor or DelimitationDescriptor()
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.cancel_token = cancel_token
        self.progress_callback = progress_callback
        # (level, parent id, code) -> id, None when known to be missing
        self._lookup_cache: dict[tuple[LocationLevel, str, str], Optional[str]] = {}

    def _find(self, level: LocationLevel, parent_id: str, code: str) -> Optional[str]:
        key = (level, parent_id, code)
        if key not in self._lookup_cache:
            self._lookup_cache[key] = self.store.find_id(level, parent_id, code)
        return self._lookup_cache[key]

    def resolve_area(self, region_code: str, sub_region_code: str, area_code: str) -> Optional[str]:
        """
        Walk region -> sub-region -> area by code.

        The region code is retried zero-padded to two digits ("1" -> "01").
        """
        region_id = self._find(LocationLevel.REGION, self.country_id, region_code)
        if region_id is None:
            padded = region_code.zfill(2)
            if padded != region_code:
                region_id = self._find(LocationLevel.REGION, self.country_id, padded)
        if region_id is None:
            return None

        sub_region_id = self._find(LocationLevel.SUB_REGION, region_id, sub_region_code)
        if sub_region_id is None:
            return None
        return self._find(LocationLevel.AREA, sub_region_id, area_code)

    def import_rows(self, rows: Iterable[DecodedRow], summary: LevelSummary) -> LevelSummary:
        """
        Upsert one unit per row.

        Args:
            rows: Decoded ``pu_data`` rows
            summary: Unit-level counters to update in place

        Returns:
            The updated summary
        """
        descriptor = self.descriptor

        def on_written(record: EntityRecord, result: "UpsertResult") -> None:
            summary.imported += 1
            if result.created:
                summary.created += 1
            elif result.changed:
                summary.updated += 1
            else:
                summary.unchanged += 1

        def on_failed(record: EntityRecord, error: Exception) -> None:
            summary.skipped_error += 1

        seen_keys: set[tuple[str, str]] = set()

        with BatchWriter(
            self.store,
            LocationLevel.UNIT,
            batch_size=self.batch_size,
            max_workers=self.max_workers,
            cancel_token=self.cancel_token,
            on_written=on_written,
            on_failed=on_failed,
            progress_callback=self.progress_callback,
        ) as writer:
            for row in rows:
                summary.seen += 1

                legacy_id = parse_legacy_id(column(row, descriptor.id_column))
                delimitation = clean_text(column(row, descriptor.delimitation_column))
                name = clean_text(column(row, descriptor.name_column))
                codes = split_delimitation(delimitation)
                if legacy_id is None or name is None or codes is None:
                    summary.skipped_invalid += 1
                    if delimitation and codes is None:
                        logger.warning(f"Invalid delimitation format: {delimitation}")
                    continue

                region_code, sub_region_code, area_code, unit_code = codes
                area_id = self.resolve_area(region_code, sub_region_code, area_code)
                if area_id is None:
                    summary.skipped_orphan += 1
                    logger.debug(f"No area for delimitation {delimitation} (unit {legacy_id})")
                    continue

                record = EntityRecord(
                    level=LocationLevel.UNIT,
                    parent_id=area_id,
                    name=name,
                    code=unit_code,
                    legacy_id=legacy_id,
                    extra={"delimitation": delimitation},
                )
                if record.natural_key in seen_keys:
                    summary.duplicate_keys += 1
                    logger.warning(f"Duplicate delimitation {delimitation}: legacy id {legacy_id} overrides")
                seen_keys.add(record.natural_key)
                writer.add(record)

        logger.info(
            f"Reseeded units: {summary.imported:,} imported "
            f"({summary.created:,} new, {summary.updated:,} updated), "
            f"{summary.skipped:,} skipped of {summary.seen:,}"
        )
        return summary
