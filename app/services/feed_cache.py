"""
app/services/feed_cache.py

Explicit in-memory cache of one coerced feed.

The cache holds ``{value, fetched_at}`` and is only ever populated by an
explicit :meth:`FeedCache.refresh` call.  A refresh fetches the full feed
text, parses and coerces it, then swaps the snapshot in under a lock.
Concurrent refreshes are allowed to race: whichever finishes last wins.

A failed refresh raises :class:`FeedRefreshError` and leaves the previous
snapshot untouched, so an outage degrades to stale data rather than none.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, Sequence, TypeVar

from analytics.csv_parser import FeedFormatError, parse_feed
from analytics.records import RawRecord
from app.connectors.base import BaseConnector, ConnectorRequestError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeedRefreshError(RuntimeError):
    """
    Raised when a feed cannot be refreshed.  ``reason`` is human readable.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


@dataclass(frozen=True)
class FeedSnapshot(Generic[T]):
    """
    One successfully refreshed feed.
    """

    records: list[T]
    fetched_at: datetime
    headers: tuple[str, ...] = ()
    rows_dropped: int = 0
    raw_records: list[RawRecord] = field(default_factory=list)


class FeedCache(Generic[T]):
    """
    Caller-owned cache of one feed with explicit refresh and invalidation.
    """

    def __init__(
        self,
        *,
        connector: BaseConnector,
        coerce: Callable[[Sequence[RawRecord]], list[T]],
    ) -> None:
        self._connector = connector
        self._coerce = coerce
        self._lock = threading.Lock()
        self._snapshot: FeedSnapshot[T] | None = None
        self._listeners: list[Callable[[list[T]], None]] = []

    @property
    def source(self) -> str:
        return self._connector.source

    @property
    def value(self) -> FeedSnapshot[T] | None:
        with self._lock:
            return self._snapshot

    @property
    def fetched_at(self) -> datetime | None:
        snapshot = self.value
        return snapshot.fetched_at if snapshot is not None else None

    @property
    def records(self) -> list[T]:
        """Current records; empty until the first successful refresh."""
        snapshot = self.value
        return list(snapshot.records) if snapshot is not None else []

    def add_listener(self, listener: Callable[[list[T]], None]) -> None:
        """Register a callback invoked with the new records after each refresh."""
        self._listeners.append(listener)

    def refresh(self) -> FeedSnapshot[T]:
        """
        Fetch, parse and coerce the feed, then replace the snapshot.

        Raises
        ------
        FeedRefreshError: When the fetch or the parse fails.  The previous
                          snapshot is kept.
        """
        try:
            fetched = self._connector.fetch()
        except ConnectorRequestError as exc:
            logger.error("Feed refresh failed source=%s error=%s", self.source, exc)
            raise FeedRefreshError(self.source, str(exc)) from exc

        try:
            parsed = parse_feed(fetched.text)
        except FeedFormatError as exc:
            logger.error("Feed parse failed source=%s error=%s", self.source, exc)
            raise FeedRefreshError(self.source, str(exc)) from exc

        snapshot = FeedSnapshot(
            records=self._coerce(parsed.records),
            fetched_at=fetched.fetched_at,
            headers=parsed.headers,
            rows_dropped=parsed.rows_dropped,
            raw_records=parsed.records,
        )
        with self._lock:
            self._snapshot = snapshot

        logger.info(
            "Feed refreshed source=%s records=%d dropped=%d",
            self.source,
            len(snapshot.records),
            snapshot.rows_dropped,
        )
        self._notify(snapshot.records)
        return snapshot

    def ensure_loaded(self) -> FeedSnapshot[T]:
        """Return the current snapshot, refreshing first when there is none."""
        snapshot = self.value
        if snapshot is None:
            snapshot = self.refresh()
        return snapshot

    def invalidate(self) -> None:
        """Drop the snapshot; the next :meth:`ensure_loaded` refetches."""
        with self._lock:
            self._snapshot = None
        logger.info("Feed cache invalidated source=%s", self.source)

    def _notify(self, records: list[T]) -> None:
        for listener in self._listeners:
            try:
                listener(list(records))
            except Exception as exc:
                logger.exception(
                    "Feed listener failed source=%s error=%s",
                    self.source,
                    exc,
                )
