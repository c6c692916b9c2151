from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.schemas.dashboard import HealthResponse


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or feed cache is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - The lead feed needs LEADS_FEED_URL or GOOGLE_SHEET_ID.
    - The ticket feed needs TICKETS_FEED_URL, or GOOGLE_SHEET_ID together
      with SHEET_GID_QUERIES.
    - FEED_REFRESH_INTERVAL_SECONDS, when set, must be a positive integer.
    """

    from app.config import load_env_files

    load_env_files()

    errors: list[str] = []

    sheet_id = os.getenv("GOOGLE_SHEET_ID", "").strip()

    # --- Lead feed ------------------------------------------------------
    if not os.getenv("LEADS_FEED_URL", "").strip() and not sheet_id:
        errors.append(
            "No lead feed configured. Set LEADS_FEED_URL or GOOGLE_SHEET_ID."
        )

    # --- Ticket feed ----------------------------------------------------
    if not os.getenv("TICKETS_FEED_URL", "").strip():
        if not sheet_id or not os.getenv("SHEET_GID_QUERIES", "").strip():
            errors.append(
                "No ticket feed configured. Set TICKETS_FEED_URL, or "
                "GOOGLE_SHEET_ID together with SHEET_GID_QUERIES."
            )

    # --- Refresh interval -----------------------------------------------
    interval = os.getenv("FEED_REFRESH_INTERVAL_SECONDS")
    if interval is not None:
        try:
            if int(interval) <= 0:
                raise ValueError(interval)
        except ValueError:
            errors.append(
                f"FEED_REFRESH_INTERVAL_SECONDS='{interval}' is not a positive integer."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Start the feed refresh scheduler on boot; shut it down on exit."""
    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Webinar Insights API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import dashboard_router, export_router, tables_router
    from app.services.dashboard_service import get_dashboard_service

    application.include_router(dashboard_router)
    application.include_router(tables_router)
    application.include_router(export_router)

    @application.get("/health")
    def healthcheck() -> HealthResponse:
        service = get_dashboard_service()
        return HealthResponse(
            status="ok",
            leads_fetched_at=service.leads.fetched_at,
            tickets_fetched_at=service.tickets.fetched_at,
        )

    return application


app = create_app()
