"""
app/scheduler/jobs.py

APScheduler-based background refresh of the dashboard feeds.

Schedule
--------
  feed_refresh — every ``FEED_REFRESH_INTERVAL_SECONDS`` (default 30)

A manual refresh through the API may run at the same time as the job.
The feed cache is last-write-wins, so the two simply race.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_feed_settings
from app.services.dashboard_service import DashboardService, get_dashboard_service
from app.services.feed_cache import FeedRefreshError

logger = logging.getLogger(__name__)

FEED_REFRESH_JOB_ID = "feed_refresh"


def run_feed_refresh(service: DashboardService) -> None:
    """
    Refetch both feeds.  Failures are logged and never propagate into the
    scheduler thread; the previous snapshot keeps serving.
    """
    logger.info("Scheduler: feed_refresh starting")
    try:
        summary = service.refresh_all()
    except FeedRefreshError as exc:
        logger.warning("Scheduler: feed_refresh failed: %s", exc.reason)
        return
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scheduler: feed_refresh crashed: %s", exc)
        return

    logger.info(
        "Scheduler: feed_refresh complete leads=%d tickets=%d",
        summary.leads,
        summary.tickets,
    )


def build_scheduler(
    service: DashboardService | None = None,
    interval_seconds: int | None = None,
) -> BackgroundScheduler:
    """
    Build and register the feed refresh job.  The first run fires as soon
    as the scheduler starts so the caches fill without blocking startup.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    target = service or get_dashboard_service()
    seconds = interval_seconds or get_feed_settings().refresh_interval_seconds

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_feed_refresh,
        trigger="interval",
        seconds=seconds,
        args=[target],
        id=FEED_REFRESH_JOB_ID,
        name="Dashboard feed refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=seconds,
        next_run_time=datetime.now(),
    )

    return scheduler
