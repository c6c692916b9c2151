"""
tests/test_config.py

Pytest unit tests for environment-driven settings.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from app.config import get_feed_settings, get_table_settings

_FEED_VARS = (
    "LEADS_FEED_URL",
    "TICKETS_FEED_URL",
    "GOOGLE_SHEET_ID",
    "SHEET_GID_USER_DATA",
    "SHEET_GID_QUERIES",
    "FEED_REFRESH_INTERVAL_SECONDS",
    "TABLE_DEFAULT_PAGE_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _FEED_VARS:
        monkeypatch.delenv(name, raising=False)
    get_feed_settings.cache_clear()
    get_table_settings.cache_clear()
    yield
    get_feed_settings.cache_clear()
    get_table_settings.cache_clear()


class TestFeedSettings:
    def test_direct_urls_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEADS_FEED_URL", "https://example.test/leads.csv")
        monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet")
        assert get_feed_settings().leads_url == "https://example.test/leads.csv"

    def test_urls_derived_from_sheet_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet")
        monkeypatch.setenv("SHEET_GID_QUERIES", "42")
        settings = get_feed_settings()
        assert settings.leads_url == "https://docs.google.com/spreadsheets/d/sheet/export?format=csv&gid=0"
        assert settings.tickets_url == "https://docs.google.com/spreadsheets/d/sheet/export?format=csv&gid=42"

    def test_ticket_feed_needs_its_gid(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet")
        assert get_feed_settings().tickets_url is None

    def test_refresh_interval_default_and_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert get_feed_settings().refresh_interval_seconds == 30
        get_feed_settings.cache_clear()
        monkeypatch.setenv("FEED_REFRESH_INTERVAL_SECONDS", "soon")
        assert get_feed_settings().refresh_interval_seconds == 30


class TestTableSettings:
    def test_unsupported_page_size_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TABLE_DEFAULT_PAGE_SIZE", "7")
        assert get_table_settings().default_page_size == 25

    def test_supported_page_size(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TABLE_DEFAULT_PAGE_SIZE", "50")
        assert get_table_settings().default_page_size == 50
