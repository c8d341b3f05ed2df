"""
Dry-run inspection of a dump, without touching any store.

Reports, per level, how many rows parse, structural anomalies, rows whose
parent legacy id is absent from the parent table, and rows that collide on
the natural key (same parent legacy id and code).
"""

import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from ..models import DEFAULT_LEVELS, LevelDescriptor, LocationLevel
from .import_utils import clean_text, column, parse_legacy_id
from .sql_dump import SqlDump

logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 10


class LevelInspection(BaseModel):
    """What ``inspect_dump`` found for one level."""

    level: LocationLevel
    table: str
    table_found: bool = False
    statements: int = 0
    rows: int = 0
    invalid_rows: int = 0
    orphan_rows: int = 0
    duplicate_keys: int = 0
    malformed_chars: int = 0
    unterminated: int = 0
    orphan_samples: list[int] = Field(default_factory=list)
    duplicate_samples: list[str] = Field(default_factory=list)

    @property
    def clean(self) -> bool:
        return (
            self.table_found
            and not self.invalid_rows
            and not self.orphan_rows
            and not self.duplicate_keys
            and not self.malformed_chars
            and not self.unterminated
        )


def inspect_dump(
    dump: SqlDump,
    levels: Sequence[LevelDescriptor] = DEFAULT_LEVELS,
) -> list[LevelInspection]:
    """
    Parse every level's table and report data-quality problems.

    Args:
        dump: Loaded dump
        levels: Level configuration, top level first

    Returns:
        One LevelInspection per level, in the given order
    """
    results: list[LevelInspection] = []
    parent_ids: Optional[set[int]] = None

    for descriptor in levels:
        extraction = dump.extract_table(descriptor.table)
        inspection = LevelInspection(
            level=descriptor.level,
            table=descriptor.table,
            table_found=extraction.found,
            statements=extraction.statements,
            rows=len(extraction.rows),
            malformed_chars=extraction.stats.skipped_chars,
            unterminated=extraction.stats.unterminated + extraction.stats.unterminated_quotes,
        )

        level_ids: set[int] = set()
        keys: set[tuple[Optional[int], str]] = set()

        for row in extraction.rows:
            legacy_id = parse_legacy_id(column(row, descriptor.id_column))
            name = clean_text(column(row, descriptor.name_column))
            code = clean_text(column(row, descriptor.code_column))
            if legacy_id is None or name is None or code is None:
                inspection.invalid_rows += 1
                continue
            level_ids.add(legacy_id)

            parent_legacy_id: Optional[int] = None
            if descriptor.requires_parent:
                parent_legacy_id = parse_legacy_id(column(row, descriptor.parent_column))
                if parent_ids is None or parent_legacy_id not in parent_ids:
                    inspection.orphan_rows += 1
                    if len(inspection.orphan_samples) < SAMPLE_LIMIT:
                        inspection.orphan_samples.append(legacy_id)

            key = (parent_legacy_id, code)
            if key in keys:
                inspection.duplicate_keys += 1
                if len(inspection.duplicate_samples) < SAMPLE_LIMIT:
                    inspection.duplicate_samples.append(f"{parent_legacy_id}:{code}")
            keys.add(key)

        logger.info(
            f"{descriptor.table}: {inspection.rows:,} rows, {inspection.orphan_rows:,} orphans, "
            f"{inspection.duplicate_keys:,} duplicate keys"
        )
        results.append(inspection)
        parent_ids = level_ids

    return results
