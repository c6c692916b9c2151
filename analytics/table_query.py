"""
analytics/table_query.py

Stateless table query engine for the leads and queries screens.

``query_table(records, state, schema)`` applies the filter state in a fixed
order, each stage narrowing the output of the previous one:

    1. window        — schema timestamp column inside ``state.window``
    2. equality      — ``state.column_filters`` (column → exact value)
    3. substring     — ``state.column_search``  (column → contained text)
    4. free text     — ``state.search`` OR'd over the searchable columns
    5. sort          — ``state.sort`` or the schema default
    6. pagination    — page clamped to ``[1, total_pages]``

Cells are read from each record's RawRecord by column name, so the engine
works for lead and ticket rows alike.  Comparisons go through the same
coercion helpers the metrics use.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

from analytics.coercion import (
    bool_like_label,
    get_payment_status_display,
    lookup,
    normalize_status,
    normalize_text,
    parse_amount,
    parse_bool_like,
    parse_payment_status,
    parse_percentage,
    parse_timestamp,
)
from analytics.date_range import DateWindow
from analytics.records import PaymentStatus, TicketRecord, TypedRecord

logger = logging.getLogger(__name__)

TableRow = Union[TypedRecord, TicketRecord]

ALLOWED_PAGE_SIZES: tuple[int, ...] = (10, 25, 50, 100)
DEFAULT_PAGE_SIZE = 25
ALL_VALUES = "all"


class InvalidPageSizeError(ValueError):
    """
    Raised when a page size outside ``ALLOWED_PAGE_SIZES`` is requested.
    """


class ColumnKind(str, Enum):
    TEXT = "text"
    AMOUNT = "amount"
    PERCENTAGE = "percentage"
    TIMESTAMP = "timestamp"
    PAYMENT_STATUS = "payment_status"
    BOOL_LIKE = "bool_like"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortKey:
    column: str
    direction: SortDirection = SortDirection.ASC


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TableSchema:
    """
    Column kinds and search behaviour of one table screen.

    Columns missing from ``columns`` are treated as plain text.
    """

    name: str
    columns: Mapping[str, ColumnKind]
    searchable: tuple[str, ...]
    timestamp_column: str | None = None
    default_sort: SortKey | None = None

    def kind_of(self, column: str) -> ColumnKind:
        return self.columns.get(column, ColumnKind.TEXT)


LEAD_TABLE = TableSchema(
    name="leads",
    columns={
        "name": ColumnKind.TEXT,
        "mobile": ColumnKind.TEXT,
        "email": ColumnKind.TEXT,
        "role": ColumnKind.TEXT,
        "client_status": ColumnKind.TEXT,
        "nurturing": ColumnKind.TEXT,
        "payment_status": ColumnKind.PAYMENT_STATUS,
        "source": ColumnKind.TEXT,
        "reg_timestamp": ColumnKind.TIMESTAMP,
        "payable_amt": ColumnKind.AMOUNT,
        "paid_amt": ColumnKind.AMOUNT,
        "discount_percentage": ColumnKind.PERCENTAGE,
        "discount_amt": ColumnKind.AMOUNT,
        "couponcode_given": ColumnKind.TEXT,
        "couponcode_applied": ColumnKind.TEXT,
        "txn_id": ColumnKind.TEXT,
        "txn_timestamp": ColumnKind.TIMESTAMP,
        "currency": ColumnKind.TEXT,
        "Unsubscribed": ColumnKind.BOOL_LIKE,
    },
    searchable=("name", "email", "mobile"),
    timestamp_column="reg_timestamp",
)

TICKET_TABLE = TableSchema(
    name="queries",
    columns={
        "ticket_id": ColumnKind.TEXT,
        "name": ColumnKind.TEXT,
        "email": ColumnKind.TEXT,
        "mobile": ColumnKind.TEXT,
        "query": ColumnKind.TEXT,
        "query_reply": ColumnKind.TEXT,
        "query_category": ColumnKind.TEXT,
        "query_status": ColumnKind.TEXT,
        "Status": ColumnKind.TEXT,
        "query_resolved_by": ColumnKind.TEXT,
        "query_timestamp": ColumnKind.TIMESTAMP,
        "query_resolved_timestamp": ColumnKind.TIMESTAMP,
    },
    searchable=("name", "email", "ticket_id", "query", "mobile"),
    timestamp_column="query_timestamp",
    default_sort=SortKey("query_timestamp", SortDirection.DESC),
)


# ---------------------------------------------------------------------------
# Filter state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterState:
    """
    Immutable table state.  Every transition except :meth:`with_page`
    returns a state positioned on page 1.
    """

    search: str = ""
    column_filters: Mapping[str, str] = field(default_factory=dict)
    column_search: Mapping[str, str] = field(default_factory=dict)
    sort: SortKey | None = None
    window: DateWindow | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size not in ALLOWED_PAGE_SIZES:
            raise InvalidPageSizeError(
                f"Page size {self.page_size} is not one of {list(ALLOWED_PAGE_SIZES)}"
            )

    def with_search(self, text: str) -> FilterState:
        return replace(self, search=text or "", page=1)

    def with_column_filter(self, column: str, value: str | None) -> FilterState:
        """Set an exact-match filter; ``None``, ``""`` or ``"all"`` clears it."""
        filters = dict(self.column_filters)
        if value is None or normalize_text(value) in ("", ALL_VALUES):
            filters.pop(column, None)
        else:
            filters[column] = value
        return replace(self, column_filters=filters, page=1)

    def with_column_search(self, column: str, text: str | None) -> FilterState:
        searches = dict(self.column_search)
        if not text or not text.strip():
            searches.pop(column, None)
        else:
            searches[column] = text
        return replace(self, column_search=searches, page=1)

    def toggle_sort(self, column: str) -> FilterState:
        """Ascending on a new column; a second toggle on the same column flips to descending."""
        if self.sort is not None and self.sort.column == column and self.sort.direction is SortDirection.ASC:
            key = SortKey(column, SortDirection.DESC)
        else:
            key = SortKey(column, SortDirection.ASC)
        return replace(self, sort=key, page=1)

    def with_sort(self, key: SortKey | None) -> FilterState:
        return replace(self, sort=key, page=1)

    def with_window(self, window: DateWindow | None) -> FilterState:
        return replace(self, window=window, page=1)

    def with_page_size(self, size: int) -> FilterState:
        if size not in ALLOWED_PAGE_SIZES:
            raise InvalidPageSizeError(
                f"Page size {size} is not one of {list(ALLOWED_PAGE_SIZES)}"
            )
        return replace(self, page_size=size, page=1)

    def with_page(self, page: int) -> FilterState:
        return replace(self, page=max(1, page))

    def reset(self) -> FilterState:
        """Clear search, filters and sort; the window and page size survive."""
        return FilterState(window=self.window, page_size=self.page_size)


@dataclass(frozen=True)
class QueryResult:
    """
    One page of a table query plus the full filtered, sorted set.
    """

    records: list[TableRow]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    filtered: list[TableRow] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Cell access and matching
# ---------------------------------------------------------------------------


def cell_value(record: TableRow, column: str) -> str:
    """Raw cell text of *column*; ``""`` when the feed lacks the column."""
    return lookup(record.raw, column)


def _timestamp_cell(record: TableRow, column: str) -> datetime | None:
    return parse_timestamp(cell_value(record, column))


def _matches_equals(record: TableRow, column: str, expected: str, schema: TableSchema) -> bool:
    kind = schema.kind_of(column)
    cell = cell_value(record, column)

    if kind is ColumnKind.PAYMENT_STATUS:
        wanted = parse_payment_status(expected)
        if wanted is PaymentStatus.UNKNOWN:
            return normalize_status(cell) == normalize_status(expected)
        return parse_payment_status(cell) is wanted

    if kind is ColumnKind.BOOL_LIKE:
        return parse_bool_like(cell) == parse_bool_like(expected)

    if kind is ColumnKind.TIMESTAMP:
        ts = parse_timestamp(cell)
        if ts is None:
            return normalize_text(cell) == normalize_text(expected)
        return ts.date().isoformat() == expected.strip()

    return normalize_text(cell) == normalize_text(expected)


def _matches_substring(record: TableRow, column: str, text: str, schema: TableSchema) -> bool:
    cell = cell_value(record, column)
    if schema.kind_of(column) is ColumnKind.BOOL_LIKE:
        cell = bool_like_label(cell)
    return normalize_text(text) in normalize_text(cell)


def _matches_search(record: TableRow, term: str, schema: TableSchema) -> bool:
    return any(term in normalize_text(cell_value(record, column)) for column in schema.searchable)


def _sort_key(column: str, schema: TableSchema) -> Callable[[TableRow], Any]:
    kind = schema.kind_of(column)

    if kind is ColumnKind.AMOUNT:
        return lambda r: parse_amount(cell_value(r, column))
    if kind is ColumnKind.PERCENTAGE:
        return lambda r: parse_percentage(cell_value(r, column))
    if kind is ColumnKind.TIMESTAMP:
        # Missing timestamps sort as the earliest value.
        def by_timestamp(r: TableRow) -> tuple[bool, datetime]:
            ts = _timestamp_cell(r, column)
            return (ts is not None, ts or datetime.min)

        return by_timestamp
    return lambda r: normalize_text(cell_value(r, column))


def sort_records(records: Sequence[TableRow], key: SortKey, schema: TableSchema) -> list[TableRow]:
    """Stable sort in either direction."""
    return sorted(
        records,
        key=_sort_key(key.column, schema),
        reverse=key.direction is SortDirection.DESC,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_filters(
    records: Iterable[TableRow],
    state: FilterState,
    schema: TableSchema = LEAD_TABLE,
) -> list[TableRow]:
    """Stages 1–5 of the query: every matching record, sorted."""
    rows = list(records)

    if state.window is not None and schema.timestamp_column:
        column = schema.timestamp_column
        rows = [r for r in rows if state.window.contains(_timestamp_cell(r, column))]

    for column, expected in state.column_filters.items():
        if normalize_text(expected) == ALL_VALUES:
            continue
        rows = [r for r in rows if _matches_equals(r, column, expected, schema)]

    for column, text in state.column_search.items():
        rows = [r for r in rows if _matches_substring(r, column, text, schema)]

    term = normalize_text(state.search)
    if term:
        rows = [r for r in rows if _matches_search(r, term, schema)]

    key = state.sort or schema.default_sort
    if key is not None:
        rows = sort_records(rows, key, schema)
    return rows


def query_table(
    records: Iterable[TableRow],
    state: FilterState,
    schema: TableSchema = LEAD_TABLE,
) -> QueryResult:
    """
    Filter, sort and paginate *records* according to *state*.

    The requested page is clamped into ``[1, total_pages]``; an empty
    result still reports one (empty) page.
    """
    filtered = apply_filters(records, state, schema)
    total = len(filtered)
    total_pages = max(1, math.ceil(total / state.page_size))
    page = min(max(1, state.page), total_pages)
    start = (page - 1) * state.page_size

    logger.debug(
        "Table query table=%s matched=%d page=%d/%d",
        schema.name,
        total,
        page,
        total_pages,
    )
    return QueryResult(
        records=filtered[start:start + state.page_size],
        total_count=total,
        page=page,
        page_size=state.page_size,
        total_pages=total_pages,
        filtered=filtered,
    )


def unique_column_values(
    records: Iterable[TableRow],
    column: str,
    schema: TableSchema = LEAD_TABLE,
) -> list[str]:
    """
    Distinct non-empty values of *column* for a filter dropdown.

    Timestamp columns give distinct ``YYYY-MM-DD`` dates, most recent first.
    Boolean-like columns give ``Yes``/``No`` labels; payment statuses give
    their display labels.
    """
    kind = schema.kind_of(column)

    if kind is ColumnKind.TIMESTAMP:
        dates = {ts.date() for ts in (_timestamp_cell(r, column) for r in records) if ts is not None}
        return [day.isoformat() for day in sorted(dates, reverse=True)]

    seen: dict[str, str] = {}
    for record in records:
        cell = cell_value(record, column)
        if not cell:
            continue
        if kind is ColumnKind.BOOL_LIKE:
            cell = bool_like_label(cell)
        elif kind is ColumnKind.PAYMENT_STATUS:
            cell = get_payment_status_display(cell)
        seen.setdefault(normalize_text(cell), cell)

    values = list(seen.values())
    if kind is ColumnKind.BOOL_LIKE:
        flags = [label for label in ("Yes", "No") if label in values]
        return flags + sorted((v for v in values if v not in ("Yes", "No")), key=str.lower)
    return sorted(values, key=str.lower)
