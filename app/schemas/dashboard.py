"""
app/schemas/dashboard.py

Response schemas for the dashboard, table and refresh endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PaymentBreakdownResponse(BaseModel):
    """
    Payment status counts and their share of the window total (0–100).
    """

    success: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    need_time: int = Field(..., ge=0)
    success_pct: float = Field(..., ge=0, le=100)
    pending_pct: float = Field(..., ge=0, le=100)
    failed_pct: float = Field(..., ge=0, le=100)
    need_time_pct: float = Field(..., ge=0, le=100)


class FunnelResponse(BaseModel):
    leads: int = Field(..., ge=0)
    registered: int = Field(..., ge=0)
    paid: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)


class LabelCountResponse(BaseModel):
    label: str
    count: int = Field(..., ge=0)


class TimeBucketResponse(BaseModel):
    start: datetime
    label: str
    count: int = Field(..., ge=0)


class DateWindowResponse(BaseModel):
    """
    Resolved window; ``start``/``end`` are null for all time.
    """

    preset: str
    label: str
    granularity: str
    start: datetime | None = None
    end: datetime | None = None


class MetricsResponse(BaseModel):
    """
    API response model for one metrics snapshot.
    """

    window: DateWindowResponse
    total_count: int = Field(..., ge=0)
    revenue: float
    success_count: int = Field(..., ge=0)
    average_revenue: float
    conversion_rate: float = Field(..., ge=0, le=100)
    engagement_rate: float = Field(..., ge=0, le=100)
    payment_breakdown: PaymentBreakdownResponse
    funnel: FunnelResponse
    role_distribution: list[LabelCountResponse] = Field(default_factory=list)
    top_sources: list[LabelCountResponse] = Field(default_factory=list)
    time_series: list[TimeBucketResponse] = Field(default_factory=list)


class TicketStatsResponse(BaseModel):
    open: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class RefreshResponse(BaseModel):
    """
    API response model for a manual feed refresh.
    """

    leads: int = Field(..., ge=0)
    tickets: int = Field(..., ge=0)
    refreshed_at: datetime


class TablePageResponse(BaseModel):
    """
    One page of a table query.  ``rows`` carry the feed's raw cell values.
    """

    rows: list[dict[str, str]] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=1)


class FilterOptionsResponse(BaseModel):
    column: str
    values: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """
    Liveness plus the time each feed was last fetched successfully.
    """

    status: str = "ok"
    leads_fetched_at: datetime | None = None
    tickets_fetched_at: datetime | None = None
