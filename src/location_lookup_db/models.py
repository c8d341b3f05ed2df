"""
Pydantic models for the location hierarchy import.

Covers the level configuration (which dump table feeds which level and at
which column positions), the records written to the store, and the
per-level counters reported at the end of a run.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

# One decoded tuple from a VALUES clause: strings, or None for SQL NULL
DecodedRow = list[Optional[str]]


class LocationLevel(str, Enum):
    """The four tiers of the hierarchy, top to bottom."""

    REGION = "region"
    SUB_REGION = "sub_region"
    AREA = "area"
    UNIT = "unit"

    @property
    def parent(self) -> Optional["LocationLevel"]:
        index = LEVEL_ORDER.index(self)
        return LEVEL_ORDER[index - 1] if index > 0 else None

    @property
    def label(self) -> str:
        return self.value.replace("_", "-")


LEVEL_ORDER: list[LocationLevel] = [
    LocationLevel.REGION,
    LocationLevel.SUB_REGION,
    LocationLevel.AREA,
    LocationLevel.UNIT,
]


class LevelDescriptor(BaseModel):
    """
    Static description of where one level's rows live in the dump.

    Column positions are zero-based indexes into the decoded tuple.
    The top level has no parent column; its records hang off the root country.
    """

    model_config = ConfigDict(frozen=True)

    level: LocationLevel
    table: str
    id_column: int = Field(default=0, ge=0)
    parent_column: Optional[int] = Field(default=None, ge=0)
    name_column: int = Field(ge=0)
    code_column: int = Field(ge=0)
    extra_columns: dict[str, int] = Field(default_factory=dict)

    @property
    def requires_parent(self) -> bool:
        return self.parent_column is not None

    @model_validator(mode="after")
    def _check_parent_column(self) -> "LevelDescriptor":
        if self.level == LocationLevel.REGION and self.parent_column is not None:
            raise ValueError("The region level has no parent column")
        if self.level != LocationLevel.REGION and self.parent_column is None:
            raise ValueError(f"Level {self.level.value} needs a parent_column")
        return self


DEFAULT_LEVELS: tuple[LevelDescriptor, ...] = (
    LevelDescriptor(level=LocationLevel.REGION, table="states", name_column=1, code_column=2),
    LevelDescriptor(
        level=LocationLevel.SUB_REGION, table="local_governments",
        parent_column=1, name_column=2, code_column=3,
    ),
    LevelDescriptor(
        level=LocationLevel.AREA, table="registration_areas",
        parent_column=1, name_column=2, code_column=3,
    ),
    LevelDescriptor(
        level=LocationLevel.UNIT, table="polling_units",
        parent_column=1, name_column=2, code_column=3,
        extra_columns={"delimitation": 4},
    ),
)


class LevelConfig(BaseModel):
    """A full level configuration, as loaded from a ``--levels`` JSON file."""

    levels: list[LevelDescriptor]

    @model_validator(mode="after")
    def _check_order(self) -> "LevelConfig":
        found = [d.level for d in self.levels]
        if found != LEVEL_ORDER:
            expected = ", ".join(level.value for level in LEVEL_ORDER)
            raise ValueError(f"Levels must be listed exactly once in order: {expected}")
        tables = [d.table for d in self.levels]
        if len(set(tables)) != len(tables):
            raise ValueError("Each level must read a different table")
        return self


class DelimitationDescriptor(BaseModel):
    """Where the unit reseed reads from: one row per unit with an SS-LL-WW-PPP code."""

    model_config = ConfigDict(frozen=True)

    table: str = "pu_data"
    id_column: int = Field(default=0, ge=0)
    delimitation_column: int = Field(default=4, ge=0)
    name_column: int = Field(default=8, ge=0)


class EntityRecord(BaseModel):
    """A row ready for the store. ``legacy_id`` is never persisted."""

    level: LocationLevel
    parent_id: str
    name: str
    code: str
    legacy_id: int
    extra: dict[str, str] = Field(default_factory=dict)

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.parent_id, self.code)

    def describe(self) -> str:
        return f"{self.level.value} {self.name!r} (code={self.code}, legacy_id={self.legacy_id}, parent={self.parent_id})"


class LocationRecord(BaseModel):
    """A record as read back from the store."""

    id: str
    level: LocationLevel
    parent_id: Optional[str]
    name: str
    code: str
    record: dict[str, Any] = Field(default_factory=dict)


class LevelSummary(BaseModel):
    """Counters for one level of one run."""

    level: LocationLevel
    table: str
    table_found: bool = False
    statements: int = 0
    seen: int = 0
    imported: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped_orphan: int = 0
    skipped_invalid: int = 0
    skipped_error: int = 0
    duplicate_keys: int = 0
    malformed_chars: int = 0
    unterminated: int = 0

    @computed_field
    @property
    def skipped(self) -> int:
        return self.skipped_orphan + self.skipped_invalid + self.skipped_error


class ImportSummary(BaseModel):
    """Outcome of a full pipeline run (or a unit reseed)."""

    dump_path: Optional[str] = None
    levels: list[LevelSummary] = Field(default_factory=list)
    cancelled: bool = False
    warnings: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @computed_field
    @property
    def success(self) -> bool:
        return not self.cancelled and self.finished_at is not None

    @computed_field
    @property
    def total_created(self) -> int:
        return sum(s.created for s in self.levels)

    @computed_field
    @property
    def total_skipped(self) -> int:
        return sum(s.skipped for s in self.levels)

    def for_level(self, level: LocationLevel) -> LevelSummary:
        for summary in self.levels:
            if summary.level == level:
                return summary
        raise KeyError(level)
