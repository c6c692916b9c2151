"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorFetchResult, ConnectorRequestError
from app.connectors.sheet_feed_connector import SheetFeedConnector

__all__ = [
    "BaseConnector",
    "ConnectorFetchResult",
    "ConnectorRequestError",
    "SheetFeedConnector",
]
