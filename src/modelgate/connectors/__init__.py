"""
modelgate.connectors

Connector implementations:
- MemoryConnector: in-process dictionaries
- SqlConnector: SQLAlchemy Core, one table per Model

`build_connector()` returns the connector selected in AppSettings.connector.
"""

from __future__ import annotations

from typing import Optional

from ..config import AppSettings, get_settings
from .memory import MemoryConnector
from .sql import SqlConnector


def build_connector(settings: Optional[AppSettings] = None) -> MemoryConnector | SqlConnector:
    settings = settings or get_settings()
    if settings.connector.kind == "sql":
        return SqlConnector.from_settings(settings.database)
    return MemoryConnector()


__all__ = [
    "MemoryConnector",
    "SqlConnector",
    "build_connector",
]
