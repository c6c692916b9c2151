"""
app/services/dashboard_service.py

Dashboard orchestration over the lead and ticket feed caches.

The service owns one :class:`FeedCache` per feed and exposes the read
operations the routers need.  Every computation is delegated to the pure
functions in :mod:`analytics`; no transformation logic lives here or in
the routers.

:class:`DashboardPipeline` is the explicit recomputation hook for a bound
dashboard view: new data recomputes the metrics and returns the table to
page 1, filter and window changes requery.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Mapping, Sequence

from analytics.coercion import coerce_lead_records, coerce_ticket_records
from analytics.date_range import DateWindow
from analytics.export import export_csv
from analytics.metrics import MetricsSnapshot, TicketStats, get_metrics, get_ticket_stats
from analytics.records import TicketRecord, TypedRecord
from analytics.table_query import (
    LEAD_TABLE,
    TICKET_TABLE,
    FilterState,
    QueryResult,
    TableRow,
    TableSchema,
    apply_filters,
    query_table,
    unique_column_values,
)
from app.config import get_external_http_settings, get_feed_settings
from app.connectors import SheetFeedConnector
from app.services.feed_cache import FeedCache, FeedRefreshError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshSummary:
    """
    Outcome of refreshing every feed.
    """

    leads: int
    tickets: int
    refreshed_at: datetime


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DashboardPipeline:
    """
    Holds the derived state of one dashboard view and recomputes it
    wholesale on each event.
    """

    def __init__(
        self,
        *,
        schema: TableSchema = LEAD_TABLE,
        window: DateWindow | None = None,
        state: FilterState | None = None,
    ) -> None:
        self._schema = schema
        self._lock = threading.Lock()
        self._records: list[TypedRecord] = []
        self.window = window or DateWindow.unbounded()
        self.state = (state or FilterState()).with_window(self.window)
        self.metrics: MetricsSnapshot = get_metrics(self._records, self.window)
        self.page: QueryResult = query_table(self._records, self.state, self._schema)

    @property
    def records(self) -> list[TypedRecord]:
        return list(self._records)

    def on_data_changed(self, records: Sequence[TypedRecord]) -> None:
        """New record set: recompute the metrics and go back to page 1."""
        with self._lock:
            self._records = list(records)
            self.state = self.state.with_page(1)
            self._recompute_metrics()
            self._requery()

    def on_filter_changed(self, state: FilterState) -> None:
        with self._lock:
            self.state = state
            self._requery()

    def on_window_changed(self, window: DateWindow) -> None:
        with self._lock:
            self.window = window
            self.state = self.state.with_window(window)
            self._recompute_metrics()
            self._requery()

    def _recompute_metrics(self) -> None:
        self.metrics = get_metrics(self._records, self.window)

    def _requery(self) -> None:
        self.page = query_table(self._records, self.state, self._schema)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class DashboardService:
    """
    Read-side facade over the lead and ticket feeds.
    """

    def __init__(
        self,
        *,
        leads: FeedCache[TypedRecord],
        tickets: FeedCache[TicketRecord],
        pipeline: DashboardPipeline | None = None,
    ) -> None:
        self.leads = leads
        self.tickets = tickets
        self.pipeline = pipeline or DashboardPipeline()
        self.leads.add_listener(self.pipeline.on_data_changed)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_all(self) -> RefreshSummary:
        """
        Refresh both feeds.  Both are attempted even if the first fails.

        Raises
        ------
        FeedRefreshError: With every failure reason joined when any feed
                          could not be refreshed.
        """
        failures: list[FeedRefreshError] = []
        for cache in (self.leads, self.tickets):
            try:
                cache.refresh()
            except FeedRefreshError as exc:
                failures.append(exc)

        if failures:
            reason = "; ".join(str(exc) for exc in failures)
            source = ",".join(exc.source for exc in failures)
            raise FeedRefreshError(source, reason)

        return RefreshSummary(
            leads=len(self.leads.records),
            tickets=len(self.tickets.records),
            refreshed_at=datetime.now(),
        )

    def _lead_records(self) -> list[TypedRecord]:
        return list(self.leads.ensure_loaded().records)

    def _ticket_records(self) -> list[TicketRecord]:
        return list(self.tickets.ensure_loaded().records)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self, window: DateWindow, now: datetime | None = None) -> MetricsSnapshot:
        return get_metrics(self._lead_records(), window, now=now)

    def get_ticket_stats(self) -> TicketStats:
        return get_ticket_stats(self._ticket_records())

    def live_metrics(self) -> MetricsSnapshot:
        """All-time metrics the pipeline last recomputed on a lead refresh."""
        self.leads.ensure_loaded()
        return self.pipeline.metrics

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def query_leads(self, state: FilterState) -> QueryResult:
        return query_table(self._lead_records(), state, LEAD_TABLE)

    def query_tickets(self, state: FilterState) -> QueryResult:
        return query_table(self._ticket_records(), state, TICKET_TABLE)

    def lead_filter_options(self, column: str) -> list[str]:
        return unique_column_values(self._lead_records(), column, LEAD_TABLE)

    def ticket_filter_options(self, column: str) -> list[str]:
        return unique_column_values(self._ticket_records(), column, TICKET_TABLE)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_leads(
        self,
        state: FilterState,
        *,
        columns: Sequence[str] | None = None,
        visibility: Mapping[str, bool] | None = None,
    ) -> str:
        rows: list[TableRow] = apply_filters(self._lead_records(), state, LEAD_TABLE)
        return export_csv(rows, columns=columns, visibility=visibility)

    def export_tickets(
        self,
        state: FilterState,
        *,
        columns: Sequence[str] | None = None,
        visibility: Mapping[str, bool] | None = None,
    ) -> str:
        rows: list[TableRow] = apply_filters(self._ticket_records(), state, TICKET_TABLE)
        return export_csv(rows, columns=columns, visibility=visibility)


@lru_cache(maxsize=1)
def get_dashboard_service() -> DashboardService:
    """
    Build and cache the dashboard service.  Nothing is fetched here.
    """

    feed_settings = get_feed_settings()
    http_settings = get_external_http_settings()
    leads = FeedCache(
        connector=SheetFeedConnector(
            source="leads",
            url=feed_settings.leads_url,
            http_settings=http_settings,
        ),
        coerce=coerce_lead_records,
    )
    tickets = FeedCache(
        connector=SheetFeedConnector(
            source="tickets",
            url=feed_settings.tickets_url,
            http_settings=http_settings,
        ),
        coerce=coerce_ticket_records,
    )
    return DashboardService(leads=leads, tickets=tickets)
