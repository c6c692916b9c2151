"""
analytics/export.py

CSV export of lead and ticket rows.

Rows are projected from each record's RawRecord so the file carries the
values exactly as they arrived in the feed.  Column order is either the
caller's explicit list or the header order of the first record; a
visibility mask drops columns mapped to ``False``.

Quoting follows the same dialect :mod:`analytics.csv_parser` reads: values
containing the delimiter, a quote or a newline are wrapped in quotes with
inner quotes doubled, so an export always parses back to the same rows.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date
from typing import Iterable, Mapping, Sequence

from analytics.csv_parser import DEFAULT_DELIMITER
from analytics.table_query import TableRow, cell_value

logger = logging.getLogger(__name__)

EMPTY_EXPORT_MESSAGE = "No data to download."


class EmptyExportError(ValueError):
    """
    Raised instead of producing a header-only file.
    """

    def __init__(self, message: str = EMPTY_EXPORT_MESSAGE) -> None:
        super().__init__(message)


def resolve_columns(
    records: Sequence[TableRow],
    columns: Sequence[str] | None = None,
    visibility: Mapping[str, bool] | None = None,
) -> list[str]:
    """
    Ordered export columns.

    Columns absent from *visibility* stay visible; only an explicit
    ``False`` hides a column.
    """
    if columns:
        ordered = list(columns)
    elif records:
        ordered = list(records[0].raw.keys())
    else:
        ordered = []
    if not visibility:
        return ordered
    return [column for column in ordered if visibility.get(column, True) is not False]


def _export_cell(record: TableRow, column: str) -> str:
    if column in record.raw:
        return record.raw[column]
    return cell_value(record, column)


def export_csv(
    records: Iterable[TableRow],
    columns: Sequence[str] | None = None,
    visibility: Mapping[str, bool] | None = None,
    delimiter: str = DEFAULT_DELIMITER,
) -> str:
    """
    Serialise *records* to CSV text with ``\\n`` line endings.

    Raises
    ------
    EmptyExportError: When *records* is empty.
    """
    rows = list(records)
    if not rows:
        raise EmptyExportError()

    fields = resolve_columns(rows, columns, visibility)
    buf = io.StringIO()
    writer = csv.writer(
        buf,
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writerow(fields)
    for record in rows:
        writer.writerow([_export_cell(record, column) for column in fields])

    logger.info("CSV export rows=%d columns=%d", len(rows), len(fields))
    return buf.getvalue()


def export_filename(prefix: str, today: date | None = None) -> str:
    """``"<prefix>_YYYY-MM-DD.csv"`` stamped with *today* (local date)."""
    stamp = (today or date.today()).isoformat()
    return f"{prefix}_{stamp}.csv"
