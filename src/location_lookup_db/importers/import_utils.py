"""Small parsing helpers shared by the importers."""

import re
from typing import Optional

from ..models import DecodedRow

_DELIMITATION_RE = re.compile(r"^\s*(\w+)-(\w+)-(\w+)-(\w+)\s*$")


def parse_legacy_id(value: Optional[str]) -> Optional[int]:
    """
    Parse a legacy integer id from a decoded value.

    Returns None for NULL, blanks and anything that is not a whole number.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def normalize_name(name: str) -> str:
    """Normalize a location name for search: lowercase, single-spaced."""
    if not name:
        return ""
    return " ".join(name.lower().split())


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip a decoded value, mapping NULL and blanks to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def column(row: DecodedRow, index: Optional[int]) -> Optional[str]:
    """Value at ``index``, or None when the row is too short or no index is given."""
    if index is None or index >= len(row):
        return None
    return row[index]


def split_delimitation(delimitation: Optional[str]) -> Optional[tuple[str, str, str, str]]:
    """
    Split an ``SS-LL-WW-PPP`` delimitation into its four codes.

    Returns None unless the value has exactly four non-empty parts.
    """
    if not delimitation:
        return None
    match = _DELIMITATION_RE.match(delimitation)
    if match is None:
        return None
    region, sub_region, area, unit = match.groups()
    return region, sub_region, area, unit
