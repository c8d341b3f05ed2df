"""
Pipeline driver: runs the four hierarchy levels against one dump.

Levels run strictly in order (region, sub-region, area, unit). Each level's
identifier map is complete and frozen before the next level reads it. The
store handle is passed in explicitly; nothing here holds global state.
"""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import ImportCancelled
from .importers.delimitation import DelimitationImporter
from .importers.hierarchy import HierarchicalImporter
from .importers.identifier_map import IdentifierRemapper
from .importers.sql_dump import SqlDump
from .models import (
    DEFAULT_LEVELS,
    DelimitationDescriptor,
    ImportSummary,
    LevelConfig,
    LevelDescriptor,
    LevelSummary,
    LocationLevel,
)
from .store import LocationStore

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "NG"


class CancelToken:
    """
    Cooperative cancellation, checked between batches and between levels.

    Fires when ``cancel()`` is called or when the optional monotonic
    deadline passes.
    """

    def __init__(self, deadline: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def from_timeout(cls, seconds: Optional[float]) -> "CancelToken":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False


class LocationImportPipeline:
    """Import a dump's four location tables into a store."""

    def __init__(
        self,
        store: LocationStore,
        country_code: str = DEFAULT_COUNTRY_CODE,
        levels: Sequence[LevelDescriptor] = DEFAULT_LEVELS,
        batch_size: int = 500,
        max_workers: int = 1,
        cancel_token: Optional[CancelToken] = None,
        progress_callback: Optional[Callable[[LocationLevel, int, int], None]] = None,
    ):
        # Validates order and table uniqueness
        self.levels = LevelConfig(levels=list(levels)).levels
        self.store = store
        self.country_code = country_code
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.cancel_token = cancel_token or CancelToken()
        self.progress_callback = progress_callback

    def run(self, path: str | Path) -> ImportSummary:
        """
        Read the dump at ``path`` and import all levels.

        Raises:
            DumpReadError: If the dump cannot be read
            StoreUnavailableError: If the store cannot be reached
        """
        return self.run_dump(SqlDump.from_path(path))

    def run_dump(self, dump: SqlDump) -> ImportSummary:
        """Import all levels from an already loaded dump."""
        summary = ImportSummary(
            dump_path=dump.source,
            levels=[LevelSummary(level=d.level, table=d.table) for d in self.levels],
        )

        country_id = self.store.ensure_country(self.country_code)
        remapper = IdentifierRemapper()
        importer = HierarchicalImporter(
            self.store,
            remapper,
            root_id=country_id,
            batch_size=self.batch_size,
            max_workers=self.max_workers,
            cancel_token=self.cancel_token,
            progress_callback=self.progress_callback,
        )

        try:
            for descriptor in self.levels:
                if self.cancel_token.cancelled:
                    raise ImportCancelled(f"Import cancelled before {descriptor.level.value}")

                level_summary = summary.for_level(descriptor.level)
                logger.info(f"Importing {descriptor.level.label} from `{descriptor.table}`...")
                extraction = dump.extract_table(descriptor.table)
                level_summary.table_found = extraction.found
                level_summary.statements = extraction.statements
                level_summary.malformed_chars = extraction.stats.skipped_chars
                level_summary.unterminated = (
                    extraction.stats.unterminated + extraction.stats.unterminated_quotes
                )
                if not extraction.found:
                    summary.warnings.append(f"No INSERT statements found for table `{descriptor.table}`")

                importer.import_level(descriptor, extraction.rows, level_summary)
        except ImportCancelled as e:
            logger.warning(f"{e}; re-running the import is safe")
            summary.cancelled = True
            summary.warnings.append(str(e))

        summary.finished_at = datetime.now()
        return summary

    def reseed_units(
        self,
        dump: SqlDump,
        descriptor: Optional[DelimitationDescriptor] = None,
    ) -> ImportSummary:
        """
        Upsert units from the dump's delimitation table.

        Expects regions, sub-regions and areas to be in the store already.
        """
        descriptor = descriptor or DelimitationDescriptor()
        level_summary = LevelSummary(level=LocationLevel.UNIT, table=descriptor.table)
        summary = ImportSummary(dump_path=dump.source, levels=[level_summary])

        country_id = self.store.ensure_country(self.country_code)
        extraction = dump.extract_table(descriptor.table)
        level_summary.table_found = extraction.found
        level_summary.statements = extraction.statements
        level_summary.malformed_chars = extraction.stats.skipped_chars
        level_summary.unterminated = extraction.stats.unterminated + extraction.stats.unterminated_quotes
        if not extraction.found:
            summary.warnings.append(f"No INSERT statements found for table `{descriptor.table}`")

        importer = DelimitationImporter(
            self.store,
            country_id,
            descriptor=descriptor,
            batch_size=self.batch_size,
            max_workers=self.max_workers,
            cancel_token=self.cancel_token,
            progress_callback=self.progress_callback,
        )
        try:
            importer.import_rows(extraction.rows, level_summary)
        except ImportCancelled as e:
            logger.warning(f"{e}; re-running the reseed is safe")
            summary.cancelled = True
            summary.warnings.append(str(e))

        summary.finished_at = datetime.now()
        return summary
