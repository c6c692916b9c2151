"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.

Table endpoints accept the same query parameters:

    search     free text over the table's searchable columns
    filter     ``column:value`` exact match, repeatable
    contains   ``column:text`` substring match, repeatable
    sort       column name; ``direction`` is ``asc`` or ``desc``
    page, page_size
    preset | start & end   optional date window
"""

from __future__ import annotations

from datetime import date

from fastapi import Depends, HTTPException, Query, status

from analytics.date_range import DateWindow, UnknownPresetError, resolve_window
from analytics.table_query import (
    ALLOWED_PAGE_SIZES,
    FilterState,
    InvalidPageSizeError,
    SortDirection,
    SortKey,
)
from app.config import get_table_settings


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def parse_column_pairs(tokens: list[str], param: str) -> dict[str, str]:
    """
    Parse repeated ``column:value`` tokens.  The value may itself contain
    colons; the column may not be empty.
    """

    pairs: dict[str, str] = {}
    for token in tokens:
        column, sep, value = token.partition(":")
        column = column.strip()
        if not sep or not column:
            raise _bad_request(f"Invalid {param} {token!r}. Expected 'column:value'.")
        pairs[column] = value.strip()
    return pairs


def parse_csv_list(raw: str | None) -> list[str]:
    """Split a comma-separated query value, dropping empty entries."""

    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _resolve(preset: str | None, start: date | None, end: date | None) -> DateWindow:
    try:
        return resolve_window(preset, start, end)
    except UnknownPresetError as exc:
        raise _bad_request(str(exc)) from exc


def get_metrics_window(
    preset: str | None = Query(default=None, description="Date preset, e.g. today or last7days."),
    start: date | None = Query(default=None, description="Custom range start (YYYY-MM-DD)."),
    end: date | None = Query(default=None, description="Custom range end (YYYY-MM-DD)."),
) -> DateWindow:
    """
    Resolve the dashboard window; no parameters means all time.
    """

    return _resolve(preset, start, end)


def get_optional_window(
    preset: str | None = Query(default=None, description="Date preset, e.g. today or last7days."),
    start: date | None = Query(default=None, description="Custom range start (YYYY-MM-DD)."),
    end: date | None = Query(default=None, description="Custom range end (YYYY-MM-DD)."),
) -> DateWindow | None:
    """
    Resolve a table window; no parameters means the table is not date scoped.
    """

    if preset is None and start is None and end is None:
        return None
    return _resolve(preset, start, end)


def get_filter_state(
    search: str = Query(default="", description="Free-text search."),
    filters: list[str] = Query(default=[], alias="filter", description="column:value, repeatable."),
    contains: list[str] = Query(default=[], description="column:text, repeatable."),
    sort: str | None = Query(default=None, description="Sort column."),
    direction: str = Query(default="asc", description="asc or desc."),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, description=f"One of {list(ALLOWED_PAGE_SIZES)}."),
    window: DateWindow | None = Depends(get_optional_window),
) -> FilterState:
    """
    Build a FilterState from query parameters.
    """

    try:
        sort_direction = SortDirection(direction.strip().lower())
    except ValueError as exc:
        raise _bad_request(f"Invalid direction {direction!r}. Must be 'asc' or 'desc'.") from exc

    state = FilterState(page_size=get_table_settings().default_page_size)
    try:
        if page_size is not None:
            state = state.with_page_size(page_size)
    except InvalidPageSizeError as exc:
        raise _bad_request(str(exc)) from exc

    state = state.with_search(search).with_window(window)
    for column, value in parse_column_pairs(filters, "filter").items():
        state = state.with_column_filter(column, value)
    for column, text in parse_column_pairs(contains, "contains").items():
        state = state.with_column_search(column, text)
    if sort:
        state = state.with_sort(SortKey(sort.strip(), sort_direction))
    return state.with_page(page)


def get_visibility(
    hide: str | None = Query(default=None, description="Comma-separated columns to leave out."),
) -> dict[str, bool]:
    """
    Column visibility mask for exports; only hidden columns are listed.
    """

    return {column: False for column in parse_csv_list(hide)}
