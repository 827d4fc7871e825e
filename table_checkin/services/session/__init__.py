"""
Session Establishment and Persistence

Usage:
    from table_checkin.services.session import get_session_store

    store = get_session_store()
    record = store.load()

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from table_checkin.core.config import get_settings
from table_checkin.services.session.orchestrator import (
    SessionHandoff,
    SessionOrchestrator,
    SessionRequest,
    SessionStage,
    normalize_display_name,
)
from table_checkin.services.session.presence import ZONE_EXIT_REASON, ZonePresenceMonitor
from table_checkin.services.session.store import (
    BaseSessionStore,
    InMemorySessionStore,
    JsonFileSessionStore,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_session_store() -> BaseSessionStore:
    """
    Get the configured session store.

    Returns:
        BaseSessionStore: JsonFileSessionStore at SESSION_STORE_PATH
    """
    settings = get_settings()
    logger.info(f"Session Store: Using JsonFileSessionStore ({settings.session_store_path})")
    return JsonFileSessionStore(
        path=settings.session_store_path,
        lock_timeout=settings.session_lock_timeout,
    )


def reset_session_store() -> None:
    """Clear the cached session store."""
    get_session_store.cache_clear()
    logger.debug("Session store cache cleared")


__all__ = [
    "get_session_store",
    "reset_session_store",
    "BaseSessionStore",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionHandoff",
    "SessionOrchestrator",
    "SessionRequest",
    "SessionStage",
    "normalize_display_name",
    "ZonePresenceMonitor",
    "ZONE_EXIT_REASON",
]
