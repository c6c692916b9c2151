"""
analytics/metrics.py

Deterministic dashboard metrics over coerced lead records.

All calculations operate on an in-memory record sequence plus a resolved
:class:`~analytics.date_range.DateWindow`.  Nothing here fetches, caches or
mutates; calling :func:`get_metrics` twice with the same inputs returns
equal snapshots.

Formulas
--------
Revenue          = Σ paid_amount where payment status is SUCCESS
Average Revenue  = revenue / success_count
Conversion Rate  = success_count / total_count × 100
Engagement Rate  = engaged_count / total_count × 100
                   (engaged = client_status not an opt-out value)

Every ratio is defined as ``0`` when its denominator is zero.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from analytics.coercion import ZERO, normalize_text
from analytics.date_range import DateWindow
from analytics.records import PaymentStatus, TicketRecord, TypedRecord

logger = logging.getLogger(__name__)

PRIMARY_ROLES: tuple[str, ...] = ("Entrepreneur", "Student", "Faculty", "Industry Professional")
UNKNOWN_LABEL = "Unknown"
TOP_SOURCES_LIMIT = 10

_DISENGAGED_STATUSES = frozenset({"unsubscribed", "un-subscribed", "unsubscribe", "inactive"})
_CLOSED_TICKET_STATUSES = frozenset({"closed", "resolved"})
_OPEN_TICKET_STATUS = "open"

_RATE_QUANTUM = Decimal("0.01")
_HUNDRED = Decimal("100")


# ---------------------------------------------------------------------------
# Output dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentBreakdown:
    """
    Payment status counts inside the window.

    ``need_time`` is tracked on its own and is part of neither the
    success nor the failed figure.  UNKNOWN statuses count nowhere.
    """

    success: int = 0
    pending: int = 0
    failed: int = 0
    need_time: int = 0
    success_pct: Decimal = ZERO
    pending_pct: Decimal = ZERO
    failed_pct: Decimal = ZERO
    need_time_pct: Decimal = ZERO


@dataclass(frozen=True)
class Funnel:
    """
    Four-stage conversion funnel.

    The feed carries no intermediate stage signal, so ``registered`` equals
    ``leads`` and ``completed`` equals ``paid``.
    """

    leads: int = 0
    registered: int = 0
    paid: int = 0
    completed: int = 0


@dataclass(frozen=True)
class TimeBucket:
    start: datetime
    label: str
    count: int = 0


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Immutable result of one :func:`get_metrics` call.
    """

    window: DateWindow
    total_count: int = 0
    revenue: Decimal = ZERO
    success_count: int = 0
    average_revenue: Decimal = ZERO
    conversion_rate: Decimal = ZERO
    engagement_rate: Decimal = ZERO
    payment_breakdown: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    funnel: Funnel = field(default_factory=Funnel)
    role_distribution: tuple[tuple[str, int], ...] = ()
    top_sources: tuple[tuple[str, int], ...] = ()
    time_series: tuple[TimeBucket, ...] = ()


@dataclass(frozen=True)
class TicketStats:
    open: int = 0
    closed: int = 0
    total: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def percentage(part: int | Decimal, whole: int | Decimal) -> Decimal:
    """``part / whole × 100`` rounded to two places; ``0`` when *whole* is 0."""
    if not whole:
        return ZERO
    ratio = Decimal(part) / Decimal(whole) * _HUNDRED
    return ratio.quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def is_engaged(record: TypedRecord) -> bool:
    return normalize_text(record.client_status) not in _DISENGAGED_STATUSES


def _label_or_unknown(value: str) -> str:
    text = (value or "").strip()
    return text or UNKNOWN_LABEL


def role_distribution(records: Iterable[TypedRecord]) -> list[tuple[str, int]]:
    """
    Count per role.  Primary roles always appear first, in fixed order, even
    at zero; any other role follows alphabetically.
    """
    counts: Counter[str] = Counter(_label_or_unknown(r.role) for r in records)
    ordered = [(role, counts.get(role, 0)) for role in PRIMARY_ROLES]
    extras = sorted(role for role in counts if role not in PRIMARY_ROLES)
    ordered.extend((role, counts[role]) for role in extras)
    return ordered


def top_sources(records: Iterable[TypedRecord], limit: int = TOP_SOURCES_LIMIT) -> list[tuple[str, int]]:
    """
    The *limit* most frequent sources by descending count.

    Ties keep first-seen order: ``Counter`` preserves insertion order and
    ``sorted`` is stable.
    """
    counts: Counter[str] = Counter(_label_or_unknown(r.source) for r in records)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def time_series(records: Iterable[TypedRecord], window: DateWindow) -> list[TimeBucket]:
    """
    Count records per bucket of *window*.

    Every bucket is present at zero before counting; records without a
    timestamp or outside the bucket range are never counted.
    """
    starts = window.bucket_starts()
    counts: dict[datetime, int] = {start: 0 for start in starts}
    for record in records:
        bucket = window.bucket_of(record.timestamp)
        if bucket is not None and bucket in counts:
            counts[bucket] += 1
    return [TimeBucket(start=start, label=window.bucket_label(start), count=counts[start]) for start in starts]


def payment_breakdown(records: Sequence[TypedRecord]) -> PaymentBreakdown:
    statuses = Counter(r.payment_status for r in records)
    total = len(records)
    success = statuses[PaymentStatus.SUCCESS]
    pending = statuses[PaymentStatus.PENDING]
    failed = statuses[PaymentStatus.FAILED]
    need_time = statuses[PaymentStatus.NEED_TIME]
    return PaymentBreakdown(
        success=success,
        pending=pending,
        failed=failed,
        need_time=need_time,
        success_pct=percentage(success, total),
        pending_pct=percentage(pending, total),
        failed_pct=percentage(failed, total),
        need_time_pct=percentage(need_time, total),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def filter_window(records: Iterable[TypedRecord], window: DateWindow) -> list[TypedRecord]:
    """Records whose registration timestamp falls inside *window*."""
    return [r for r in records if window.contains(r.timestamp)]


def get_metrics(
    records: Iterable[TypedRecord],
    window: DateWindow,
    now: datetime | None = None,
) -> MetricsSnapshot:
    """
    Compute the dashboard snapshot for *records* inside *window*.

    *now* pins the calendar year of an unbounded window that was built
    without one; resolved windows already carry their own year.
    """
    if window.year is None and not window.is_bounded:
        window = DateWindow.unbounded(year=(now or datetime.now()).year)

    scoped = filter_window(records, window)
    total = len(scoped)

    revenue = ZERO
    success_count = 0
    engaged = 0
    for record in scoped:
        if record.payment_status is PaymentStatus.SUCCESS:
            success_count += 1
            revenue += record.paid_amount
        if is_engaged(record):
            engaged += 1

    average = revenue / success_count if success_count else ZERO

    snapshot = MetricsSnapshot(
        window=window,
        total_count=total,
        revenue=revenue,
        success_count=success_count,
        average_revenue=average,
        conversion_rate=percentage(success_count, total),
        engagement_rate=percentage(engaged, total),
        payment_breakdown=payment_breakdown(scoped),
        funnel=Funnel(leads=total, registered=total, paid=success_count, completed=success_count),
        role_distribution=tuple(role_distribution(scoped)),
        top_sources=tuple(top_sources(scoped)),
        time_series=tuple(time_series(scoped, window)),
    )
    logger.debug(
        "Metrics computed window=%s total=%d success=%d revenue=%s",
        window.preset,
        total,
        success_count,
        revenue,
    )
    return snapshot


def get_ticket_stats(tickets: Iterable[TicketRecord]) -> TicketStats:
    """Open / closed counts of the ticket feed; ``resolved`` counts as closed."""
    open_count = closed_count = total = 0
    for ticket in tickets:
        total += 1
        status = normalize_text(ticket.status)
        if status == _OPEN_TICKET_STATUS:
            open_count += 1
        elif status in _CLOSED_TICKET_STATUSES:
            closed_count += 1
    return TicketStats(open=open_count, closed=closed_count, total=total)
