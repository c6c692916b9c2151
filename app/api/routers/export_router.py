"""
app/api/routers/export_router.py

CSV download of the lead and query tables.

GET /export/leads
GET /export/queries

Query parameters
----------------
Every table parameter (search, filter, contains, sort, direction, preset,
start, end) narrows the export exactly as it narrows the table; paging is
ignored and the full filtered set is written.

columns : optional comma-separated column order
hide    : optional comma-separated columns to leave out

Responses
---------
200 → StreamingResponse, Content-Type: text/csv; charset=utf-8
      Content-Disposition: attachment; filename=<prefix>_<YYYY-MM-DD>.csv
404 → nothing matched ("No data to download.")
502 → the feed could not be fetched

All serialisation lives in ``analytics.export``; the router only handles
HTTP plumbing (content-type, filename, error mapping).
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from analytics.export import EmptyExportError, export_filename
from analytics.table_query import FilterState
from app.api.dependencies import get_filter_state, get_visibility, parse_csv_list
from app.services.dashboard_service import DashboardService, get_dashboard_service
from app.services.feed_cache import FeedRefreshError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])

LEADS_EXPORT_PREFIX = "leads_export"
QUERIES_EXPORT_PREFIX = "queries"


def _to_csv_streaming(text: str, filename: str) -> StreamingResponse:
    """Stream *text* as a UTF-8 CSV file download."""

    def _generate() -> Iterator[bytes]:
        yield text.encode("utf-8")

    return StreamingResponse(
        content=_generate(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _export(run: Callable[[], str], prefix: str) -> StreamingResponse:
    try:
        text = run()
    except EmptyExportError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except FeedRefreshError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.reason) from exc

    filename = export_filename(prefix)
    logger.info("CSV export served filename=%s bytes=%d", filename, len(text))
    return _to_csv_streaming(text, filename)


@router.get("/leads", summary="Download the filtered lead table as CSV")
def export_leads(
    columns: str | None = Query(default=None, description="Comma-separated column order."),
    state: FilterState = Depends(get_filter_state),
    visibility: dict[str, bool] = Depends(get_visibility),
    service: DashboardService = Depends(get_dashboard_service),
) -> StreamingResponse:
    return _export(
        lambda: service.export_leads(state, columns=parse_csv_list(columns) or None, visibility=visibility),
        LEADS_EXPORT_PREFIX,
    )


@router.get("/queries", summary="Download the filtered query table as CSV")
def export_queries(
    columns: str | None = Query(default=None, description="Comma-separated column order."),
    state: FilterState = Depends(get_filter_state),
    visibility: dict[str, bool] = Depends(get_visibility),
    service: DashboardService = Depends(get_dashboard_service),
) -> StreamingResponse:
    return _export(
        lambda: service.export_tickets(state, columns=parse_csv_list(columns) or None, visibility=visibility),
        QUERIES_EXPORT_PREFIX,
    )
