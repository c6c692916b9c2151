"""
analytics/csv_parser.py

Lenient parser for the spreadsheet CSV export.

Rules
-----
- The first non-blank line is the header; header names are trimmed.
- Quoted fields may contain the delimiter and newlines; ``""`` inside
  quotes is one literal quote.  No other escaping exists.
- Blank and whitespace-only lines are skipped.
- A data line whose field count differs from the header's is dropped
  silently.  One bad row never aborts the whole feed.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field

from analytics.records import RawRecord, make_raw_record

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ","


class FeedFormatError(ValueError):
    """
    Raised when the feed text cannot be tokenized at all.
    """


@dataclass(frozen=True)
class FeedParseResult:
    """
    Parsed feed plus bookkeeping about skipped lines.
    """

    headers: tuple[str, ...] = ()
    records: list[RawRecord] = field(default_factory=list)
    rows_dropped: int = 0


def _is_blank_line(row: list[str]) -> bool:
    # csv.reader yields [] for an empty line and [""] for a quoted empty field.
    return not row or (len(row) == 1 and row[0] != "" and not row[0].strip())


def parse_feed(text: str, delimiter: str = DEFAULT_DELIMITER) -> FeedParseResult:
    """
    Parse *text* into RawRecords, keeping header order for every record.
    """
    if not text:
        return FeedParseResult()
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
    )

    headers: list[str] = []
    records: list[RawRecord] = []
    rows_dropped = 0

    try:
        for row in reader:
            if _is_blank_line(row):
                continue
            if not headers:
                headers = [cell.strip() for cell in row]
                continue
            if len(row) != len(headers):
                rows_dropped += 1
                logger.debug(
                    "Dropping feed line %d: expected %d fields, got %d",
                    reader.line_num,
                    len(headers),
                    len(row),
                )
                continue
            records.append(
                make_raw_record({name: value.strip() for name, value in zip(headers, row)})
            )
    except csv.Error as exc:
        raise FeedFormatError(f"Invalid CSV format near line {reader.line_num}: {exc}") from exc

    if rows_dropped:
        logger.info(
            "Parsed feed rows=%d dropped=%d columns=%d",
            len(records),
            rows_dropped,
            len(headers),
        )
    return FeedParseResult(headers=tuple(headers), records=records, rows_dropped=rows_dropped)


def parse_csv(text: str, delimiter: str = DEFAULT_DELIMITER) -> list[RawRecord]:
    """Parse *text* and return only the well-formed records."""
    return parse_feed(text, delimiter=delimiter).records
