"""
MySQL dump reader.

Loads a ``mysqldump``-style export into memory once and extracts the rows of
any table from its ``INSERT INTO `table` ... VALUES ...;`` statements. A
table's data may be split over several statements anywhere in the file; the
rows of all of them are returned in document order.

Dump format (only the parts we read)::

    INSERT INTO `states` (`id`, `name`, `abbreviation`) VALUES
    (1,'Abia','AB'),
    (2,'Adamawa','AD');

Plain, ``.gz`` and ``.bz2`` files are supported.
"""

import bz2
import gzip
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..errors import DumpReadError
from ..models import DecodedRow
from .sql_values import ParseStats, TupleLexer, ValueDecoder

logger = logging.getLogger(__name__)


def _insert_pattern(table: str) -> re.Pattern:
    """Match the head of an INSERT for ``table`` up to and including VALUES."""
    return re.compile(
        rf"INSERT\s+(?:IGNORE\s+)?INTO\s+`{re.escape(table)}`[^;]*?\bVALUES\b",
        re.IGNORECASE,
    )


@dataclass
class TableExtraction:
    """All rows found for one table."""

    table: str
    rows: list[DecodedRow] = field(default_factory=list)
    statements: int = 0
    stats: ParseStats = field(default_factory=ParseStats)

    @property
    def found(self) -> bool:
        return self.statements > 0


class SqlDump:
    """An in-memory dump document. Immutable once loaded."""

    def __init__(self, text: str, source: Optional[str] = None):
        self._text = text
        self.source = source

    @property
    def text(self) -> str:
        return self._text

    @classmethod
    def from_path(cls, path: str | Path, encoding: str = "utf-8") -> "SqlDump":
        """
        Read a dump file fully into memory.

        Args:
            path: Dump file (.sql, .sql.gz or .sql.bz2)
            encoding: Text encoding of the dump

        Returns:
            Loaded dump

        Raises:
            DumpReadError: If the file is missing or cannot be decoded
        """
        path = Path(path)
        logger.info(f"Opening dump file: {path}")

        file_handle: Any = None
        try:
            logger.info(f"File size: {path.stat().st_size / (1024**2):.1f} MB")
            if path.suffix == ".gz":
                file_handle = gzip.open(path, "rt", encoding=encoding)
            elif path.suffix == ".bz2":
                file_handle = bz2.open(path, "rt", encoding=encoding)
            else:
                file_handle = open(path, "r", encoding=encoding)
            text = file_handle.read()
        except (OSError, UnicodeDecodeError, EOFError) as e:
            raise DumpReadError(f"Failed to read dump {path}: {e}") from e
        finally:
            if file_handle is not None:
                file_handle.close()

        logger.info(f"Loaded dump: {len(text):,} characters")
        return cls(text, source=str(path))

    def extract_table(self, table: str) -> TableExtraction:
        """
        Collect the decoded rows of every INSERT statement for ``table``.

        Args:
            table: Table name as it appears between backticks

        Returns:
            TableExtraction with rows in document order. No matching
            statements gives an empty extraction, not an error.
        """
        extraction = TableExtraction(table=table)
        pattern = _insert_pattern(table)
        text = self._text
        pos = 0

        while True:
            match = pattern.search(text, pos)
            if match is None:
                break
            extraction.statements += 1
            stats = ParseStats()
            rows_before = len(extraction.rows)

            lexer = TupleLexer(text, start=match.end(), stats=stats)
            decoder = ValueDecoder(stats)
            for raw in lexer:
                extraction.rows.append(decoder.decode(raw))
            pos = lexer.end

            extraction.stats.merge(stats)
            logger.debug(
                f"  {table}: statement {extraction.statements} at offset {match.start():,} "
                f"-> {len(extraction.rows) - rows_before:,} rows"
            )

        if not extraction.found:
            logger.warning(f"No data found for table: {table}")
        else:
            if extraction.statements > 1:
                logger.info(f"  Found {extraction.statements} INSERT statements for {table}")
            logger.info(f"  Parsed {len(extraction.rows):,} rows from {table}")
            if extraction.stats.skipped_chars:
                logger.warning(
                    f"  {table}: skipped {extraction.stats.skipped_chars:,} characters outside tuples"
                )
        return extraction

    def table_names(self) -> list[str]:
        """Names of all tables that have INSERT statements, in first-seen order."""
        names = re.findall(r"INSERT\s+(?:IGNORE\s+)?INTO\s+`([^`]+)`", self._text, re.IGNORECASE)
        return list(dict.fromkeys(names))

