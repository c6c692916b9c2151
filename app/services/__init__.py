"""
app/services package marker.
"""

from app.services.dashboard_service import (
    DashboardPipeline,
    DashboardService,
    RefreshSummary,
    get_dashboard_service,
)
from app.services.feed_cache import FeedCache, FeedRefreshError, FeedSnapshot

__all__ = [
    "DashboardPipeline",
    "DashboardService",
    "RefreshSummary",
    "get_dashboard_service",
    "FeedCache",
    "FeedRefreshError",
    "FeedSnapshot",
]
