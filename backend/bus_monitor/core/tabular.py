"""Decode delimited text tables from the open-data portal.

The portal serves CSV resources in whatever encoding the uploader used and
does not keep header names perfectly consistent between resources, so this
module handles three things:

* picking a text encoding for the raw bytes (Turkish-letter heuristic),
* splitting the text into rows keyed by normalized header name,
* locating logical columns through ordered exact/substring rules.
"""

import csv
import io
import logging
import math
import re
from dataclasses import dataclass, field

from bus_monitor.core.errors import FeedParseError

logger = logging.getLogger(__name__)

# Tried in order; the first one that yields convincing Turkish text wins
CANDIDATE_ENCODINGS = ("utf-8", "utf-16-le", "utf-16-be", "iso8859-9", "cp1252", "cp1254")
DEFAULT_ENCODING = "utf-8"

_TURKISH_LETTERS = re.compile("[şçğıüöŞÇĞİÜÖ]")
_ERROR_MARKERS = re.compile("[?\ufffd]")
_HEADER_JUNK = re.compile(r"[^\w]")

BOM = "\ufeff"


@dataclass
class DecodedText:
    text: str
    encoding: str
    degraded: bool = False  # no candidate looked right, default encoding used


def detect_encoding(raw: bytes, min_letters: int = 50, max_errors: int = 10) -> DecodedText:
    """Decode bytes with the first candidate encoding that produces Turkish text.

    A candidate qualifies when its output has more than ``min_letters``
    Turkish-specific letters and fewer than ``max_errors`` replacement marks.
    """
    for enc in CANDIDATE_ENCODINGS:
        try:
            candidate = raw.decode(enc, errors="replace")
        except LookupError:
            continue
        letters = len(_TURKISH_LETTERS.findall(candidate))
        errors = len(_ERROR_MARKERS.findall(candidate))
        if letters > min_letters and errors < max_errors:
            logger.debug("Encoding detected: %s (letters=%d, errors=%d)", enc, letters, errors)
            return DecodedText(text=candidate, encoding=enc)

    logger.debug("No encoding qualified, falling back to %s", DEFAULT_ENCODING)
    return DecodedText(
        text=raw.decode(DEFAULT_ENCODING, errors="replace"),
        encoding=DEFAULT_ENCODING,
        degraded=True,
    )


def normalize_header(name: str) -> str:
    """'"Stop_Lat "' -> 'stop_lat'."""
    return _HEADER_JUNK.sub("", name.strip().lower())


def parse_float(raw: str | None) -> float | None:
    """Parse a numeric cell, tolerating stray spaces. Returns None unless finite."""
    if raw is None:
        return None
    try:
        value = float(str(raw).strip().replace(" ", ""))
    except (ValueError, TypeError):
        return None
    if not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class ColumnRule:
    """Locates one logical column: exact header names first, then substrings."""

    name: str
    exact: tuple[str, ...]
    contains: tuple[str, ...] = ()

    def resolve(self, headers: list[str]) -> str | None:
        for candidate in self.exact:
            if candidate in headers:
                return candidate
        for token in self.contains:
            for header in headers:
                if token in header:
                    return header
        return None


@dataclass
class Table:
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    def column(self, rule: ColumnRule) -> str | None:
        """Header key for a logical column, or None if the table lacks it."""
        return rule.resolve(self.headers)

    def require(self, *rules: ColumnRule) -> None:
        """Raise FeedParseError unless every rule resolves to a header."""
        missing = [rule.name for rule in rules if self.column(rule) is None]
        if missing:
            raise FeedParseError(
                f"Required columns missing: {', '.join(missing)} (headers={self.headers[:10]})"
            )

    def values(self, *rules: ColumnRule):
        """Yield one tuple of cell values per row, in the order of ``rules``.

        Missing columns yield empty strings.
        """
        keys = [self.column(rule) for rule in rules]
        missing = [rule.name for rule, key in zip(rules, keys) if key is None]
        if missing:
            logger.debug("Columns not found: %s (headers=%s)", missing, self.headers[:10])
        for row in self.rows:
            yield tuple(row.get(key, "") if key else "" for key in keys)


def decode_table(text: str, delimiter: str = ",") -> Table:
    """Split delimited text into rows keyed by normalized header names."""
    if text.startswith(BOM):
        text = text[len(BOM):]

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    headers: list[str] | None = None
    rows: list[dict[str, str]] = []
    try:
        for cells in reader:
            if not any(c.strip() for c in cells):
                continue
            if headers is None:
                headers = [normalize_header(c) for c in cells]
                continue
            values = [c.strip() for c in cells]
            if len(values) < len(headers):
                values.extend([""] * (len(headers) - len(values)))
            rows.append(dict(zip(headers, values)))
    except csv.Error as e:
        raise FeedParseError(f"Malformed delimited text: {e}") from e

    if headers is None:
        raise FeedParseError("Delimited text has no header line")
    return Table(headers=headers, rows=rows)


def decode_bytes(raw: bytes, delimiter: str = ",") -> Table:
    """Detect the encoding of ``raw`` and decode it as a table."""
    decoded = detect_encoding(raw)
    if decoded.degraded:
        logger.info("Decoding %d bytes as %s (no confident encoding match)", len(raw), decoded.encoding)
    return decode_table(decoded.text, delimiter=delimiter)
