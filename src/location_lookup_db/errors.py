"""Error types raised by the dump parser, the store, and the import pipeline."""

from typing import Optional


class LocationImportError(RuntimeError):
    """Base class for location import failures."""


class DumpReadError(LocationImportError):
    """The dump file could not be read at all. Fatal for a run."""


class StoreUnavailableError(LocationImportError):
    """The store could not be opened or stopped responding. Fatal for a run."""


class StoreWriteError(LocationImportError):
    """A single record could not be written. The record is skipped and counted."""


class DuplicateRecordError(LocationImportError):
    """
    The store reports that a record with the same natural key already exists.

    Writers treat this as a successful, unchanged write.
    """

    def __init__(self, existing_id: str, message: Optional[str] = None):
        super().__init__(message or f"Record already exists: {existing_id}")
        self.existing_id = existing_id


class ImportCancelled(LocationImportError):
    """Raised between batches when the cancel token fires."""
