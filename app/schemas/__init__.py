"""
app/schemas package marker.
"""

from app.schemas.dashboard import (
    DateWindowResponse,
    FilterOptionsResponse,
    FunnelResponse,
    HealthResponse,
    LabelCountResponse,
    MetricsResponse,
    PaymentBreakdownResponse,
    RefreshResponse,
    TablePageResponse,
    TicketStatsResponse,
    TimeBucketResponse,
)

__all__ = [
    "DateWindowResponse",
    "FilterOptionsResponse",
    "FunnelResponse",
    "HealthResponse",
    "LabelCountResponse",
    "MetricsResponse",
    "PaymentBreakdownResponse",
    "RefreshResponse",
    "TablePageResponse",
    "TicketStatsResponse",
    "TimeBucketResponse",
]
