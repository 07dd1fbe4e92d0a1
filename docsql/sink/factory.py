"""
Sink factory for creating sink backend instances.

Selects the backend from the configured database URL.
"""

from typing import Optional

from docsql.config.settings import Settings, get_settings
from docsql.sink.interface import SinkBackend
from docsql.sink.memory import InMemorySink
from docsql.sink.postgres import PostgresSink

MEMORY_URL = "memory://"


def create_sink_backend(settings: Optional[Settings] = None) -> SinkBackend:
    """
    Create a sink backend based on settings.

    Returns:
        InMemorySink for "memory://", PostgresSink otherwise
    """
    settings = settings or get_settings()

    if settings.database_url.startswith(MEMORY_URL):
        return InMemorySink()
    return PostgresSink(
        settings.database_url,
        timezone=settings.sink_timezone,
        echo=settings.db_echo,
    )
