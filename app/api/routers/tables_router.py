"""
app/api/routers/tables_router.py

Paginated lead and query (ticket) tables.

GET /leads                              lead table page
GET /leads/filter-options/{column}      distinct values for a lead filter
GET /queries                            ticket table page
GET /queries/filter-options/{column}    distinct values for a ticket filter

Query parameters are documented in ``app/api/dependencies.py``.  All
filtering, sorting and pagination lives in ``analytics.table_query``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from analytics.table_query import FilterState, QueryResult
from app.api.dependencies import get_filter_state
from app.schemas.dashboard import FilterOptionsResponse, TablePageResponse
from app.services.dashboard_service import DashboardService, get_dashboard_service
from app.services.feed_cache import FeedRefreshError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tables"])


def _to_page_response(result: QueryResult) -> TablePageResponse:
    return TablePageResponse(
        rows=[dict(record.raw) for record in result.records],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


def _feed_unavailable(exc: FeedRefreshError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.reason)


@router.get("/leads", response_model=TablePageResponse, summary="Search, filter and page leads")
def list_leads(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_dashboard_service),
) -> TablePageResponse:
    try:
        result = service.query_leads(state)
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return _to_page_response(result)


@router.get(
    "/leads/filter-options/{column}",
    response_model=FilterOptionsResponse,
    summary="Distinct values of a lead column",
)
def lead_filter_options(
    column: str,
    service: DashboardService = Depends(get_dashboard_service),
) -> FilterOptionsResponse:
    try:
        values = service.lead_filter_options(column)
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return FilterOptionsResponse(column=column, values=values)


@router.get("/queries", response_model=TablePageResponse, summary="Search, filter and page support queries")
def list_queries(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_dashboard_service),
) -> TablePageResponse:
    try:
        result = service.query_tickets(state)
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return _to_page_response(result)


@router.get(
    "/queries/filter-options/{column}",
    response_model=FilterOptionsResponse,
    summary="Distinct values of a query column",
)
def query_filter_options(
    column: str,
    service: DashboardService = Depends(get_dashboard_service),
) -> FilterOptionsResponse:
    try:
        values = service.ticket_filter_options(column)
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return FilterOptionsResponse(column=column, values=values)
