"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from analytics.table_query import ALLOWED_PAGE_SIZES, DEFAULT_PAGE_SIZE

GOOGLE_SHEET_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={gid}"


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def sheet_export_url(sheet_id: str, gid: str) -> str:
    """CSV export URL of one tab of a published Google Sheet."""
    return GOOGLE_SHEET_EXPORT_URL.format(sheet_id=sheet_id, gid=gid)


@dataclass(frozen=True)
class FeedSettings:
    """
    Where the lead and ticket feeds live and how often they are refetched.
    """

    leads_url: str | None = None
    tickets_url: str | None = None
    refresh_interval_seconds: int = 30


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class TableSettings:
    """
    Table screen defaults.
    """

    default_page_size: int = DEFAULT_PAGE_SIZE


def _resolve_feed_url(direct_env: str, gid_env: str, default_gid: str | None) -> str | None:
    """
    Resolve one feed URL.

    Priority:
    1) the direct URL variable
    2) GOOGLE_SHEET_ID plus the tab gid
    """

    direct = _get_optional_str_env(direct_env)
    if direct:
        return direct

    sheet_id = _get_optional_str_env("GOOGLE_SHEET_ID")
    gid = _get_optional_str_env(gid_env) or default_gid
    if sheet_id and gid is not None:
        return sheet_export_url(sheet_id, gid)
    return None


@lru_cache(maxsize=1)
def get_feed_settings() -> FeedSettings:
    """
    Return cached feed settings from environment variables.
    """

    return FeedSettings(
        leads_url=_resolve_feed_url("LEADS_FEED_URL", "SHEET_GID_USER_DATA", "0"),
        tickets_url=_resolve_feed_url("TICKETS_FEED_URL", "SHEET_GID_QUERIES", None),
        refresh_interval_seconds=max(5, _get_int_env("FEED_REFRESH_INTERVAL_SECONDS", 30)),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_table_settings() -> TableSettings:
    """
    Return table defaults; an unsupported page size falls back to the default.
    """

    size = _get_int_env("TABLE_DEFAULT_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    if size not in ALLOWED_PAGE_SIZES:
        size = DEFAULT_PAGE_SIZE
    return TableSettings(default_page_size=size)
