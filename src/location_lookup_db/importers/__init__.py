"""
Importers for MySQL location dumps.

Parsing (``sql_values``, ``sql_dump``), identifier remapping, batched
writes, the per-level hierarchy import, the unit reseed from delimitation
codes, and a dry-run dump inspection.
"""

from .batch_writer import BatchWriter
from .delimitation import DelimitationImporter
from .dump_check import LevelInspection, inspect_dump
from .hierarchy import HierarchicalImporter
from .identifier_map import IdentifierMap, IdentifierRemapper
from .sql_dump import SqlDump, TableExtraction
from .sql_values import ParseStats, TupleLexer, ValueDecoder

__all__ = [
    "BatchWriter",
    "DelimitationImporter",
    "HierarchicalImporter",
    "IdentifierMap",
    "IdentifierRemapper",
    "LevelInspection",
    "ParseStats",
    "SqlDump",
    "TableExtraction",
    "TupleLexer",
    "ValueDecoder",
    "inspect_dump",
]
