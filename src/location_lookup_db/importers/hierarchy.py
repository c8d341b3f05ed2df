"""
Per-level import of decoded dump rows into the location store.

Each row is validated, its parent legacy id resolved against the parent
level's (already completed) identifier map, and the resulting record handed
to a BatchWriter. The id the store returns is recorded in this level's map
so the next level down can resolve its parents.
"""

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from ..models import DecodedRow, EntityRecord, LevelDescriptor, LevelSummary, LocationLevel
from .batch_writer import DEFAULT_BATCH_SIZE, BatchWriter
from .identifier_map import IdentifierRemapper
from .import_utils import clean_text, column, parse_legacy_id

if TYPE_CHECKING:
    from ..pipeline import CancelToken
    from ..store import LocationStore, UpsertResult

logger = logging.getLogger(__name__)


class HierarchicalImporter:
    """
    Imports one hierarchy level at a time.

    Duplicate natural keys within a level are written in row order, so the
    last row wins; every repeat is counted in ``duplicate_keys`` and all of
    the colliding legacy ids map to the same stored record.
    """

    def __init__(
        self,
        store: "LocationStore",
        remapper: IdentifierRemapper,
        root_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 1,
        cancel_token: Optional["CancelToken"] = None,
        progress_callback: Optional[Callable[[LocationLevel, int, int], None]] = None,
    ):
        self.store = store
        self.remapper = remapper
        self.root_id = root_id
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.cancel_token = cancel_token
        self.progress_callback = progress_callback

    def import_level(
        self,
        descriptor: LevelDescriptor,
        rows: Iterable[DecodedRow],
        summary: LevelSummary,
    ) -> LevelSummary:
        """
        Import every row of one level and freeze its identifier map.

        Args:
            descriptor: Column layout of the level's table
            rows: Decoded rows, in document order
            summary: Counters to update in place

        Returns:
            The updated summary

        Raises:
            RuntimeError: If the parent level has not been completed yet
            ImportCancelled: If the cancel token fired between batches
        """
        level = descriptor.level
        parent_level = level.parent
        if parent_level is not None and not self.remapper.is_complete(parent_level):
            raise RuntimeError(
                f"Cannot import {level.value} before {parent_level.value} has completed"
            )

        def on_written(record: EntityRecord, result: "UpsertResult") -> None:
            self.remapper.put(level, record.legacy_id, result.id)
            summary.imported += 1
            if result.created:
                summary.created += 1
            elif result.changed:
                summary.updated += 1
            else:
                summary.unchanged += 1

        def on_failed(record: EntityRecord, error: Exception) -> None:
            summary.skipped_error += 1

        seen_keys: dict[tuple[str, str], int] = {}

        with BatchWriter(
            self.store,
            level,
            batch_size=self.batch_size,
            max_workers=self.max_workers,
            cancel_token=self.cancel_token,
            on_written=on_written,
            on_failed=on_failed,
            progress_callback=self.progress_callback,
        ) as writer:
            for row in rows:
                summary.seen += 1
                record = self._build_record(descriptor, row, summary)
                if record is None:
                    continue

                previous = seen_keys.get(record.natural_key)
                if previous is not None:
                    summary.duplicate_keys += 1
                    logger.warning(
                        f"Duplicate {level.value} code {record.code!r} under parent {record.parent_id}: "
                        f"legacy id {record.legacy_id} overrides {previous}"
                    )
                seen_keys[record.natural_key] = record.legacy_id
                writer.add(record)

        self.remapper.complete(level)
        logger.info(
            f"{level.label}: {summary.imported:,} imported "
            f"({summary.created:,} new, {summary.updated:,} updated), "
            f"{summary.skipped:,} skipped of {summary.seen:,}"
        )
        return summary

    def _build_record(
        self,
        descriptor: LevelDescriptor,
        row: DecodedRow,
        summary: LevelSummary,
    ) -> Optional[EntityRecord]:
        level = descriptor.level

        legacy_id = parse_legacy_id(column(row, descriptor.id_column))
        name = clean_text(column(row, descriptor.name_column))
        code = clean_text(column(row, descriptor.code_column))
        if legacy_id is None or name is None or code is None:
            summary.skipped_invalid += 1
            logger.debug(f"Invalid {level.value} row: {row!r}")
            return None

        parent_level = level.parent
        if parent_level is None:
            parent_id = self.root_id
        else:
            parent_legacy_id = parse_legacy_id(column(row, descriptor.parent_column))
            parent_id = (
                self.remapper.get(parent_level, parent_legacy_id)
                if parent_legacy_id is not None
                else None
            )
            if parent_id is None:
                summary.skipped_orphan += 1
                logger.debug(
                    f"Orphan {level.value} legacy id {legacy_id}: "
                    f"{parent_level.value} {parent_legacy_id} was not imported"
                )
                return None

        extra = {}
        for key, index in descriptor.extra_columns.items():
            value = clean_text(column(row, index))
            if value is not None:
                extra[key] = value

        return EntityRecord(
            level=level,
            parent_id=parent_id,
            name=name,
            code=code,
            legacy_id=legacy_id,
            extra=extra,
        )
