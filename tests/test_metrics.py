"""
tests/test_metrics.py

Pytest unit tests for the metrics aggregator.

All tests are pure Python with no I/O.  Every assertion is deterministic:
given the same records and window, the same snapshot is produced.

Coverage
--------
- Empty record set (zero guards)
- Revenue, conversion and engagement
- Payment breakdown including need-time
- Funnel simplification
- Role distribution ordering and top sources
- Time series bucketing and window scoping
- Ticket open/closed counts
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from analytics.date_range import DateWindow, resolve_custom, resolve_preset
from analytics.metrics import (
    PRIMARY_ROLES,
    get_metrics,
    get_ticket_stats,
)

NOW = datetime(2025, 3, 10, 15, 0)


@pytest.fixture()
def alltime() -> DateWindow:
    return resolve_preset("alltime", now=NOW)


class TestEmptyInput:
    def test_all_figures_are_zero(self, alltime: DateWindow) -> None:
        snapshot = get_metrics([], alltime)
        assert snapshot.total_count == 0
        assert snapshot.revenue == Decimal("0")
        assert snapshot.conversion_rate == Decimal("0")
        assert snapshot.engagement_rate == Decimal("0")
        assert snapshot.average_revenue == Decimal("0")
        assert snapshot.payment_breakdown.success_pct == Decimal("0")

    def test_empty_series_is_still_fully_bucketed(self, alltime: DateWindow) -> None:
        snapshot = get_metrics([], alltime)
        assert len(snapshot.time_series) == 12
        assert all(bucket.count == 0 for bucket in snapshot.time_series)

    def test_primary_roles_present_at_zero(self, alltime: DateWindow) -> None:
        snapshot = get_metrics([], alltime)
        assert snapshot.role_distribution == tuple((role, 0) for role in PRIMARY_ROLES)


class TestRevenueAndRates:
    def test_revenue_counts_only_successful_payments(self, lead, alltime: DateWindow) -> None:
        records = [
            lead(payment_status="Success", paid_amt="₹1,000"),
            lead(payment_status="paid", paid_amt="500.50"),
            lead(payment_status="failed", paid_amt="999"),
            lead(payment_status="", paid_amt="10"),
        ]
        snapshot = get_metrics(records, alltime)
        assert snapshot.revenue == Decimal("1500.50")
        assert snapshot.success_count == 2
        assert snapshot.average_revenue == Decimal("750.25")
        assert snapshot.conversion_rate == Decimal("50.00")

    def test_engagement_excludes_opt_outs(self, lead, alltime: DateWindow) -> None:
        records = [
            lead(client_status="Active"),
            lead(client_status="Unsubscribed"),
            lead(client_status="un-subscribed"),
            lead(client_status="inactive"),
        ]
        snapshot = get_metrics(records, alltime)
        assert snapshot.engagement_rate == Decimal("25.00")

    def test_rates_are_rounded_to_two_places(self, lead, alltime: DateWindow) -> None:
        records = [lead(payment_status="success"), lead(), lead()]
        assert get_metrics(records, alltime).conversion_rate == Decimal("33.33")

    def test_rates_stay_within_bounds(self, lead, alltime: DateWindow) -> None:
        records = [lead(payment_status="success", client_status="active") for _ in range(5)]
        snapshot = get_metrics(records, alltime)
        assert Decimal("0") <= snapshot.conversion_rate <= Decimal("100")
        assert Decimal("0") <= snapshot.engagement_rate <= Decimal("100")


class TestPaymentBreakdown:
    def test_success_pending_and_need_time(self, lead, alltime: DateWindow) -> None:
        records = [
            lead(payment_status="Success"),
            lead(payment_status=""),
            lead(payment_status="Need Time to Confirm"),
        ]
        breakdown = get_metrics(records, alltime).payment_breakdown
        assert (breakdown.success, breakdown.pending, breakdown.failed) == (1, 1, 0)
        assert breakdown.need_time == 1

    def test_unknown_statuses_count_nowhere(self, lead, alltime: DateWindow) -> None:
        breakdown = get_metrics([lead(payment_status="refunded")], alltime).payment_breakdown
        assert breakdown.success + breakdown.pending + breakdown.failed + breakdown.need_time == 0


class TestFunnel:
    def test_registered_equals_leads_and_completed_equals_paid(self, lead, alltime: DateWindow) -> None:
        records = [lead(payment_status="success"), lead(), lead()]
        funnel = get_metrics(records, alltime).funnel
        assert (funnel.leads, funnel.registered, funnel.paid, funnel.completed) == (3, 3, 1, 1)


class TestDistributions:
    def test_primary_roles_first_then_alphabetical(self, lead, alltime: DateWindow) -> None:
        records = [
            lead(role="Zoologist"),
            lead(role="Student"),
            lead(role="Artist"),
            lead(role=""),
        ]
        roles = get_metrics(records, alltime).role_distribution
        assert [name for name, _ in roles] == [*PRIMARY_ROLES, "Artist", "Unknown", "Zoologist"]
        assert dict(roles)["Student"] == 1
        assert dict(roles)["Faculty"] == 0

    def test_top_sources_limited_and_ties_keep_first_seen_order(self, lead, alltime: DateWindow) -> None:
        records = [lead(source=f"src{i}") for i in range(12)]
        records += [lead(source="src5"), lead(source="src5")]
        sources = get_metrics(records, alltime).top_sources
        assert len(sources) == 10
        assert sources[0] == ("src5", 3)
        assert [name for name, _ in sources[1:4]] == ["src0", "src1", "src2"]

    def test_missing_source_is_unknown(self, lead, alltime: DateWindow) -> None:
        assert get_metrics([lead()], alltime).top_sources == (("Unknown", 1),)


class TestTimeSeries:
    def test_single_day_custom_window_hour_buckets(self, lead) -> None:
        window = resolve_custom(date(2025, 3, 10), date(2025, 3, 10))
        records = [
            lead(reg_timestamp="2025-03-10 09:15:00"),
            lead(reg_timestamp="2025-03-10 09:45:00"),
            lead(reg_timestamp="2025-03-10 23:59:00"),
            lead(reg_timestamp="2025-03-11 00:00:00"),
        ]
        snapshot = get_metrics(records, window)
        assert len(snapshot.time_series) == 24
        counts = {bucket.label: bucket.count for bucket in snapshot.time_series}
        assert counts["9AM"] == 2
        assert counts["11PM"] == 1
        assert sum(counts.values()) == 3
        assert snapshot.total_count == 3

    def test_bounded_window_excludes_missing_timestamps(self, lead) -> None:
        window = resolve_preset("last7days", now=NOW)
        records = [lead(reg_timestamp="2025-03-09 10:00:00"), lead(reg_timestamp="garbage")]
        assert get_metrics(records, window).total_count == 1

    def test_alltime_counts_everything_but_buckets_current_year(self, lead, alltime: DateWindow) -> None:
        records = [
            lead(reg_timestamp="2025-01-05 10:00:00"),
            lead(reg_timestamp="2024-07-01 10:00:00"),
            lead(reg_timestamp=""),
        ]
        snapshot = get_metrics(records, alltime)
        assert snapshot.total_count == 3
        assert sum(bucket.count for bucket in snapshot.time_series) == 1
        assert snapshot.time_series[0].count == 1

    def test_counted_records_fall_inside_window(self, lead) -> None:
        window = resolve_custom(date(2025, 3, 1), date(2025, 3, 3))
        records = [lead(reg_timestamp=f"2025-03-0{day} 12:00:00") for day in range(1, 6)]
        snapshot = get_metrics(records, window)
        assert snapshot.total_count == 3
        assert [bucket.count for bucket in snapshot.time_series] == [1, 1, 1]


class TestDeterminism:
    def test_repeated_calls_are_equal(self, lead, alltime: DateWindow) -> None:
        records = [lead(payment_status="success", paid_amt="100", role="Student", source="ads")]
        assert get_metrics(records, alltime) == get_metrics(records, alltime)

    def test_snapshot_is_frozen(self, alltime: DateWindow) -> None:
        snapshot = get_metrics([], alltime)
        with pytest.raises((AttributeError, TypeError)):
            snapshot.total_count = 5  # type: ignore[misc]


class TestTicketStats:
    def test_open_closed_and_resolved(self, ticket) -> None:
        tickets = [
            ticket(Status="Open"),
            ticket(Status="closed"),
            ticket(Status="RESOLVED"),
            ticket(Status="waiting"),
        ]
        stats = get_ticket_stats(tickets)
        assert (stats.open, stats.closed, stats.total) == (1, 2, 4)

    def test_no_tickets(self) -> None:
        stats = get_ticket_stats([])
        assert (stats.open, stats.closed, stats.total) == (0, 0, 0)
