"""
analytics/date_range.py

Date window resolution for the dashboard.

A window is either bounded (inclusive ``[start, end]`` in naive local time,
from local midnight to 23:59:59.999999) or unbounded (``alltime``).

Granularity is derived from the window, never chosen directly:

    same calendar day   → HOUR   (24 buckets of that day)
    other bounded range → DAY    (every day in range, inclusive)
    unbounded           → MONTH  (the twelve months of the current year)

The unbounded series covers the current calendar year only.  Records from
earlier years still count towards totals; they just have no bucket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum

logger = logging.getLogger(__name__)

PRESET_TODAY = "today"
PRESET_YESTERDAY = "yesterday"
PRESET_LAST_7_DAYS = "last7days"
PRESET_LAST_30_DAYS = "last30days"
PRESET_LAST_90_DAYS = "last90days"
PRESET_LAST_MONTH = "lastmonth"
PRESET_ALL_TIME = "alltime"
PRESET_CUSTOM = "custom"

PRESET_LABELS: dict[str, str] = {
    PRESET_TODAY: "Today",
    PRESET_YESTERDAY: "Yesterday",
    PRESET_LAST_7_DAYS: "Last 7 Days",
    PRESET_LAST_30_DAYS: "Last 30 Days",
    PRESET_LAST_90_DAYS: "Last 90 Days",
    PRESET_LAST_MONTH: "Last Month",
    PRESET_ALL_TIME: "All Time",
    PRESET_CUSTOM: "Custom Range",
}

# N calendar days ending today, today included.
_TRAILING_DAYS: dict[str, int] = {
    PRESET_LAST_7_DAYS: 7,
    PRESET_LAST_30_DAYS: 30,
    PRESET_LAST_90_DAYS: 90,
}

_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class UnknownPresetError(ValueError):
    """
    Raised when a preset name is not one of ``PRESET_LABELS``.
    """


class Granularity(str, Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True)
class DateWindow:
    """
    Resolved time window plus its chart bucket granularity.

    ``start``/``end`` are both ``None`` for the unbounded window; ``year``
    pins the calendar year the unbounded series covers.
    """

    start: datetime | None
    end: datetime | None
    granularity: Granularity
    preset: str = PRESET_CUSTOM
    year: int | None = None

    def __post_init__(self) -> None:
        if (self.start is None) != (self.end is None):
            raise ValueError("DateWindow needs both bounds or neither.")
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("DateWindow start must not be later than end.")
        if self.start is None and self.granularity is not Granularity.MONTH:
            raise ValueError("An unbounded DateWindow is bucketed by month.")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def between(cls, first: date, last: date, *, preset: str = PRESET_CUSTOM) -> DateWindow:
        """Inclusive window covering every calendar day from *first* to *last*."""
        start = datetime.combine(first, time.min)
        end = datetime.combine(last, time.max)
        granularity = Granularity.HOUR if first == last else Granularity.DAY
        return cls(start=start, end=end, granularity=granularity, preset=preset)

    @classmethod
    def unbounded(cls, year: int | None = None) -> DateWindow:
        return cls(
            start=None,
            end=None,
            granularity=Granularity.MONTH,
            preset=PRESET_ALL_TIME,
            year=year if year is not None else datetime.now().year,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_bounded(self) -> bool:
        return self.start is not None

    def contains(self, ts: datetime | None) -> bool:
        """
        Unbounded windows accept every record, even one without a timestamp.
        Bounded windows reject missing timestamps.
        """
        if self.start is None or self.end is None:
            return True
        if ts is None:
            return False
        return self.start <= ts <= self.end

    def bucket_starts(self) -> list[datetime]:
        """Every bucket of the window, in chronological order."""
        if self.granularity is Granularity.MONTH:
            year = self._series_year()
            return [datetime(year, month, 1) for month in range(1, 13)]

        if self.start is None or self.end is None:
            raise ValueError("Hour and day buckets need a bounded DateWindow.")
        if self.granularity is Granularity.HOUR:
            midnight = datetime.combine(self.start.date(), time.min)
            return [midnight + timedelta(hours=hour) for hour in range(24)]

        days = (self.end.date() - self.start.date()).days
        first = self.start.date()
        return [datetime.combine(first + timedelta(days=offset), time.min) for offset in range(days + 1)]

    def bucket_of(self, ts: datetime | None) -> datetime | None:
        """Start of the bucket *ts* falls into, or ``None`` when it has none."""
        if ts is None:
            return None
        if self.granularity is Granularity.MONTH:
            if ts.year != self._series_year():
                return None
            return datetime(ts.year, ts.month, 1)
        if not self.contains(ts):
            return None
        if self.granularity is Granularity.HOUR:
            return ts.replace(minute=0, second=0, microsecond=0)
        return datetime.combine(ts.date(), time.min)

    def bucket_label(self, bucket: datetime) -> str:
        if self.granularity is Granularity.HOUR:
            suffix = "PM" if bucket.hour >= 12 else "AM"
            return f"{bucket.hour % 12 or 12}{suffix}"
        if self.granularity is Granularity.DAY:
            return f"{bucket.month}/{bucket.day}"
        return _MONTH_NAMES[bucket.month - 1]

    def _series_year(self) -> int:
        return self.year if self.year is not None else datetime.now().year


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def resolve_preset(preset: str, now: datetime | None = None) -> DateWindow:
    """
    Resolve a named preset relative to *now* (defaults to the local clock).

    ``custom`` is not a preset on its own; use :func:`resolve_custom`.
    """
    key = (preset or "").strip().lower()
    current = now or datetime.now()
    today = current.date()

    if key == PRESET_TODAY:
        return DateWindow.between(today, today, preset=key)
    if key == PRESET_YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateWindow.between(yesterday, yesterday, preset=key)
    if key in _TRAILING_DAYS:
        first = today - timedelta(days=_TRAILING_DAYS[key] - 1)
        return DateWindow.between(first, today, preset=key)
    if key == PRESET_LAST_MONTH:
        last = today.replace(day=1) - timedelta(days=1)
        return DateWindow.between(last.replace(day=1), last, preset=key)
    if key == PRESET_ALL_TIME:
        return DateWindow.unbounded(year=today.year)
    if key == PRESET_CUSTOM:
        raise UnknownPresetError("The custom range needs explicit start and end dates.")

    raise UnknownPresetError(
        f"Unknown date range preset {preset!r}. Valid: {sorted(PRESET_LABELS)}"
    )


def resolve_custom(first: date | datetime, second: date | datetime) -> DateWindow:
    """
    Inclusive window between two independently chosen calendar dates.
    The dates are swapped when *second* precedes *first*.
    """
    start, end = _as_date(first), _as_date(second)
    if end < start:
        start, end = end, start
    return DateWindow.between(start, end, preset=PRESET_CUSTOM)


def resolve_window(
    preset: str | None = None,
    start: date | None = None,
    end: date | None = None,
    now: datetime | None = None,
) -> DateWindow:
    """
    Resolve API-style parameters: explicit dates imply ``custom``.
    """
    key = (preset or "").strip().lower()
    if start is not None or end is not None or key == PRESET_CUSTOM:
        if start is None or end is None:
            raise UnknownPresetError("A custom range needs both start and end dates.")
        return resolve_custom(start, end)
    return resolve_preset(key or PRESET_ALL_TIME, now=now)


def window_label(window: DateWindow) -> str:
    """``"10 Mar 25"``, ``"1 Mar 25 - 7 Mar 25"`` or the preset label."""
    if window.preset == PRESET_CUSTOM and window.start is not None and window.end is not None:
        first = _short_date(window.start.date())
        last = _short_date(window.end.date())
        return first if first == last else f"{first} - {last}"
    return PRESET_LABELS.get(window.preset, PRESET_LABELS[PRESET_CUSTOM])


def _short_date(day: date) -> str:
    return f"{day.day} {_MONTH_NAMES[day.month - 1]} {day.year % 100:02d}"


# ---------------------------------------------------------------------------
# Calendar selection
# ---------------------------------------------------------------------------


class CustomRangeSelector:
    """
    Two-click calendar selection.

    The first click records a pending start; the second completes the range
    and returns the resolved window.  A further click starts over.
    """

    def __init__(self, now: datetime | None = None) -> None:
        self._pending: date | None = None
        self._year = (now or datetime.now()).year
        self.window: DateWindow = DateWindow.unbounded(year=self._year)

    @property
    def pending(self) -> date | None:
        return self._pending

    def click(self, day: date | datetime) -> DateWindow | None:
        chosen = _as_date(day)
        if self._pending is None:
            self._pending = chosen
            return None

        first, self._pending = self._pending, None
        self.window = resolve_custom(first, chosen)
        logger.debug("Custom range selected %s", window_label(self.window))
        return self.window

    def reset(self) -> DateWindow:
        self._pending = None
        self.window = DateWindow.unbounded(year=self._year)
        return self.window
