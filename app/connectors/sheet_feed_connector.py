"""
app/connectors/sheet_feed_connector.py

Connector for a spreadsheet CSV export endpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime

import requests

from app.config import ExternalHTTPSettings
from app.connectors.base import BaseConnector, ConnectorFetchResult, ConnectorRequestError

logger = logging.getLogger(__name__)

_CSV_ACCEPT_HEADER = "text/csv, text/plain;q=0.9, */*;q=0.1"


class SheetFeedConnector(BaseConnector):
    """
    Fetches the whole CSV text of one sheet tab in a single GET.
    """

    def __init__(
        self,
        *,
        source: str,
        url: str | None,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source=source, http_settings=http_settings, session=session)
        self._url = url

    @property
    def url(self) -> str | None:
        return self._url

    def fetch(self) -> ConnectorFetchResult:
        if not self._url:
            raise ConnectorRequestError(f"{self.source}: feed URL is not configured.")

        text = self._request_text(
            method="GET",
            url=self._url,
            headers={"Accept": _CSV_ACCEPT_HEADER},
        )
        logger.info("Fetched feed source=%s bytes=%d", self.source, len(text))
        return ConnectorFetchResult(source=self.source, text=text, fetched_at=datetime.now())
