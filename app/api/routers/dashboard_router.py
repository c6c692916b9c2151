"""
app/api/routers/dashboard_router.py

Dashboard metrics, ticket counts and manual refresh.

GET  /dashboard/metrics   ?preset= | start=&end=   (default: all time)
GET  /dashboard/live      all-time metrics recomputed on each lead refresh
GET  /dashboard/tickets
POST /dashboard/refresh

A feed that cannot be fetched maps to 502 with the failure reason.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from analytics.date_range import DateWindow, window_label
from analytics.metrics import MetricsSnapshot
from app.api.dependencies import get_metrics_window
from app.schemas.dashboard import (
    DateWindowResponse,
    FunnelResponse,
    LabelCountResponse,
    MetricsResponse,
    PaymentBreakdownResponse,
    RefreshResponse,
    TicketStatsResponse,
    TimeBucketResponse,
)
from app.services.dashboard_service import DashboardService, get_dashboard_service
from app.services.feed_cache import FeedRefreshError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _window_response(window: DateWindow) -> DateWindowResponse:
    return DateWindowResponse(
        preset=window.preset,
        label=window_label(window),
        granularity=window.granularity.value,
        start=window.start,
        end=window.end,
    )


def _to_metrics_response(snapshot: MetricsSnapshot) -> MetricsResponse:
    breakdown = snapshot.payment_breakdown
    return MetricsResponse(
        window=_window_response(snapshot.window),
        total_count=snapshot.total_count,
        revenue=float(snapshot.revenue),
        success_count=snapshot.success_count,
        average_revenue=float(snapshot.average_revenue),
        conversion_rate=float(snapshot.conversion_rate),
        engagement_rate=float(snapshot.engagement_rate),
        payment_breakdown=PaymentBreakdownResponse(
            success=breakdown.success,
            pending=breakdown.pending,
            failed=breakdown.failed,
            need_time=breakdown.need_time,
            success_pct=float(breakdown.success_pct),
            pending_pct=float(breakdown.pending_pct),
            failed_pct=float(breakdown.failed_pct),
            need_time_pct=float(breakdown.need_time_pct),
        ),
        funnel=FunnelResponse(
            leads=snapshot.funnel.leads,
            registered=snapshot.funnel.registered,
            paid=snapshot.funnel.paid,
            completed=snapshot.funnel.completed,
        ),
        role_distribution=[LabelCountResponse(label=role, count=count) for role, count in snapshot.role_distribution],
        top_sources=[LabelCountResponse(label=source, count=count) for source, count in snapshot.top_sources],
        time_series=[
            TimeBucketResponse(start=bucket.start, label=bucket.label, count=bucket.count)
            for bucket in snapshot.time_series
        ],
    )


def _feed_unavailable(exc: FeedRefreshError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.reason)


@router.get("/metrics", response_model=MetricsResponse, summary="Lead metrics for a date window")
def read_metrics(
    window: DateWindow = Depends(get_metrics_window),
    service: DashboardService = Depends(get_dashboard_service),
) -> MetricsResponse:
    try:
        snapshot = service.get_metrics(window)
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return _to_metrics_response(snapshot)


@router.get("/live", response_model=MetricsResponse, summary="Metrics kept current by the feed refresh")
def read_live_metrics(
    service: DashboardService = Depends(get_dashboard_service),
) -> MetricsResponse:
    try:
        snapshot = service.live_metrics()
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return _to_metrics_response(snapshot)


@router.get("/tickets", response_model=TicketStatsResponse, summary="Open and closed ticket counts")
def read_ticket_stats(
    service: DashboardService = Depends(get_dashboard_service),
) -> TicketStatsResponse:
    try:
        stats = service.get_ticket_stats()
    except FeedRefreshError as exc:
        raise _feed_unavailable(exc) from exc
    return TicketStatsResponse(open=stats.open, closed=stats.closed, total=stats.total)


@router.post("/refresh", response_model=RefreshResponse, summary="Refetch both feeds now")
def refresh_feeds(
    service: DashboardService = Depends(get_dashboard_service),
) -> RefreshResponse:
    """
    Refetch the lead and ticket feeds.  On failure the previous data keeps
    serving and the reason is returned with a 502.
    """
    try:
        summary = service.refresh_all()
    except FeedRefreshError as exc:
        logger.warning("Manual refresh failed: %s", exc.reason)
        raise _feed_unavailable(exc) from exc

    logger.info("Manual refresh leads=%d tickets=%d", summary.leads, summary.tickets)
    return RefreshResponse(
        leads=summary.leads,
        tickets=summary.tickets,
        refreshed_at=summary.refreshed_at,
    )
