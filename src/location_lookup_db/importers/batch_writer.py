"""
Batched, per-record upserts against a location store.

Records are buffered up to ``batch_size`` and written one upsert at a time,
either sequentially or through a small thread pool. A batch is always
joined before the next one starts, and the store is committed after every
batch. A failing record is skipped without aborting its batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import DuplicateRecordError, ImportCancelled, StoreWriteError
from ..models import EntityRecord, LocationLevel

if TYPE_CHECKING:
    from ..pipeline import CancelToken
    from ..store import LocationStore, UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class BatchWriter:
    """
    Buffer EntityRecords and upsert them in bounded batches.

    Callbacks run on the calling thread, after a batch has been joined, in
    the order the records were added:

    - ``on_written(record, result)`` for each successful upsert
    - ``on_failed(record, error)`` for each record skipped on a write error
    - ``progress_callback(level, written, failed)`` once per batch
    """

    def __init__(
        self,
        store: "LocationStore",
        level: LocationLevel,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 1,
        cancel_token: Optional["CancelToken"] = None,
        on_written: Optional[Callable[[EntityRecord, "UpsertResult"], None]] = None,
        on_failed: Optional[Callable[[EntityRecord, Exception], None]] = None,
        progress_callback: Optional[Callable[[LocationLevel, int, int], None]] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.store = store
        self.level = level
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.cancel_token = cancel_token
        self.on_written = on_written
        self.on_failed = on_failed
        self.progress_callback = progress_callback

        self.written = 0
        self.failed = 0
        self.batches = 0

        self._pending: list[EntityRecord] = []
        self._pending_keys: set[tuple[str, str]] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"writer-{level.value}",
            )

    def __enter__(self) -> "BatchWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            # Leave the pending batch unwritten; the run is being aborted
            self._shutdown()

    def add(self, record: EntityRecord) -> None:
        # Keep repeated natural keys in separate batches so they are written in order
        if record.natural_key in self._pending_keys:
            self.flush()
        self._pending.append(record)
        self._pending_keys.add(record.natural_key)
        if len(self._pending) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """
        Write every buffered record.

        Returns:
            Number of records written successfully in this batch

        Raises:
            ImportCancelled: If the cancel token fired before the batch started
            StoreUnavailableError: If the store stopped responding
        """
        if not self._pending:
            return 0
        if self.cancel_token is not None and self.cancel_token.cancelled:
            raise ImportCancelled(
                f"Import cancelled before writing {len(self._pending):,} {self.level.value} records"
            )

        batch = self._pending
        self._pending = []
        self._pending_keys = set()

        if self._executor is not None:
            # map() yields in submission order and re-raises fatal errors
            outcomes = list(self._executor.map(self._write_one, batch))
        else:
            outcomes = [self._write_one(record) for record in batch]

        batch_written = 0
        for record, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                self.failed += 1
                if self.on_failed:
                    self.on_failed(record, outcome)
            else:
                batch_written += 1
                if self.on_written:
                    self.on_written(record, outcome)

        self.store.commit()
        self.written += batch_written
        self.batches += 1

        logger.info(
            f"  {self.level.value}: batch {self.batches} committed "
            f"({self.written:,} written, {self.failed:,} failed)"
        )
        if self.progress_callback:
            self.progress_callback(self.level, self.written, self.failed)
        return batch_written

    def close(self) -> None:
        """Flush the final partial batch and release the worker pool."""
        try:
            self.flush()
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _write_one(self, record: EntityRecord) -> "UpsertResult | StoreWriteError":
        from ..store import UpsertResult

        try:
            return self.store.upsert(
                record.level,
                record.parent_id,
                record.name,
                record.code,
                extra=record.extra or None,
            )
        except DuplicateRecordError as e:
            return UpsertResult(e.existing_id, created=False, changed=False)
        except StoreWriteError as e:
            logger.warning(f"Skipping {record.describe()}: {e}")
            return e
