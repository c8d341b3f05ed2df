"""
Tuple-level parsing of MySQL ``VALUES`` clauses.

A clause looks like::

    (1,'Abia','AB'),(2,'O\\'Brien Ward',NULL),(3,'It''s here','X');

``TupleLexer`` cuts the clause into raw tuple strings (the text between a
tuple's outer parentheses) and ``ValueDecoder`` turns one raw tuple into a
list of values. Both favour resilience over strictness: malformed input is
counted in ``ParseStats`` and never raises.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from ..models import DecodedRow

logger = logging.getLogger(__name__)

QUOTE_CHARS = ("'", '"')

# MySQL string escapes; any other backslash sequence decodes to the bare character
_ESCAPES = {
    "0": "\0",
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
}


@dataclass
class ParseStats:
    """Diagnostic counters shared by the lexer and decoder of one table."""

    tuples: int = 0
    skipped_chars: int = 0
    unterminated: int = 0
    unterminated_quotes: int = 0

    def merge(self, other: "ParseStats") -> None:
        self.tuples += other.tuples
        self.skipped_chars += other.skipped_chars
        self.unterminated += other.unterminated
        self.unterminated_quotes += other.unterminated_quotes


class TupleLexer:
    """
    Lazily yield raw tuple substrings from a VALUES clause.

    Scanning starts at ``start`` and stops at the first ``;`` found outside
    quotes and outside any tuple, or at the end of the text. After iteration
    ``end`` holds the index just past the terminating ``;`` (or ``len(text)``).
    A lexer is single-use; build a new one to scan again.
    """

    def __init__(self, text: str, start: int = 0, stats: Optional[ParseStats] = None):
        self.text = text
        self.start = start
        self.end = start
        self.stats = stats if stats is not None else ParseStats()

    def __iter__(self) -> Iterator[str]:
        text = self.text
        n = len(text)
        i = self.start
        stats = self.stats

        while i < n:
            ch = text[i]

            if ch.isspace() or ch == ",":
                i += 1
                continue
            if ch == ";":
                i += 1
                break
            if ch != "(":
                stats.skipped_chars += 1
                i += 1
                continue

            # Inside a tuple: track quotes, escapes and nested parens
            i += 1
            tuple_start = i
            depth = 1
            in_quotes = False
            quote_char = ""
            escaped = False
            # A quote only opens a string at the start of a value, as in ValueDecoder
            value_start = True

            while i < n:
                ch = text[i]
                if in_quotes:
                    if escaped:
                        escaped = False
                    elif ch == "\\":
                        escaped = True
                    elif ch == quote_char:
                        if i + 1 < n and text[i + 1] == quote_char:
                            i += 1  # doubled quote
                        else:
                            in_quotes = False
                elif ch in QUOTE_CHARS and value_start:
                    in_quotes = True
                    quote_char = ch
                    value_start = False
                elif ch == "(":
                    depth += 1
                    value_start = True
                elif ch == ")":
                    depth -= 1
                    if depth == 0:
                        break
                elif ch == ",":
                    value_start = True
                elif not ch.isspace():
                    value_start = False
                i += 1

            if depth == 0:
                stats.tuples += 1
                yield text[tuple_start:i]
                i += 1
            else:
                # Ran off the end of the text: hand back what we captured
                stats.tuples += 1
                stats.unterminated += 1
                logger.debug(f"Unterminated tuple starting at offset {tuple_start - 1}")
                yield text[tuple_start:n]
                i = n

        self.end = i


class ValueDecoder:
    """Split a raw tuple into typed scalar values."""

    def __init__(self, stats: Optional[ParseStats] = None):
        self.stats = stats if stats is not None else ParseStats()

    def decode(self, raw: str) -> DecodedRow:
        """
        Decode one raw tuple.

        Args:
            raw: Tuple content without the outer parentheses

        Returns:
            Values in column order. ``NULL`` becomes None; quoted values are
            unwrapped and unescaped; everything else stays a trimmed string.
        """
        values: DecodedRow = []
        if not raw.strip():
            return values

        buf: list[str] = []
        quoted = False
        in_quotes = False
        quote_char = ""
        i = 0
        n = len(raw)

        while i < n:
            ch = raw[i]

            if in_quotes:
                if ch == "\\" and i + 1 < n:
                    nxt = raw[i + 1]
                    buf.append(_ESCAPES.get(nxt, nxt))
                    i += 2
                    continue
                if ch == quote_char:
                    if i + 1 < n and raw[i + 1] == quote_char:
                        buf.append(quote_char)
                        i += 2
                        continue
                    in_quotes = False
                    i += 1
                    continue
                buf.append(ch)
                i += 1
                continue

            if ch == ",":
                values.append(self._finish(buf, quoted))
                buf = []
                quoted = False
            elif ch in QUOTE_CHARS and not quoted and not "".join(buf).strip():
                buf = []
                quoted = True
                in_quotes = True
                quote_char = ch
            elif quoted and ch.isspace():
                pass  # whitespace after a closing quote
            else:
                buf.append(ch)
            i += 1

        if in_quotes:
            self.stats.unterminated_quotes += 1
            logger.debug(f"Unterminated quote in tuple: {raw[:80]!r}")
        values.append(self._finish(buf, quoted))
        return values

    @staticmethod
    def _finish(buf: list[str], quoted: bool) -> Optional[str]:
        if quoted:
            return "".join(buf)
        token = "".join(buf).strip()
        if token.upper() == "NULL":
            return None
        return token

