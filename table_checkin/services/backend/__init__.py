"""
Venue Backend Factory

Provides a single entry point for obtaining a backend client instance.
Automatically selects Mock or HTTP based on ENV_MODE configuration.

Usage:
    from table_checkin.services.backend import get_backend_client

    backend = get_backend_client()
    result = await backend.validate_zone(coord)

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from table_checkin.core.config import get_settings
from table_checkin.services.backend.base import (
    BaseBackendClient,
    TableDetectionResult,
    TableOption,
    ZoneValidationResult,
)
from table_checkin.services.backend.http import HttpBackendClient
from table_checkin.services.backend.mock import MockBackendClient

logger = logging.getLogger(__name__)


@lru_cache()
def get_backend_client() -> BaseBackendClient:
    """
    Get the configured backend client instance.

    Returns:
        BaseBackendClient: MockBackendClient in development,
        HttpBackendClient otherwise

    Raises:
        ValueError: If not in development mode and BACKEND_BASE_URL is unset
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Backend: Using MockBackendClient (development mode)")
        return MockBackendClient.with_demo_venue(
            restaurant_id=settings.restaurant_id,
            failure_rate=settings.mock_failure_rate,
            min_latency=settings.mock_min_latency,
            max_latency=settings.mock_max_latency,
        )

    logger.info(
        f"Backend: Using HttpBackendClient "
        f"({settings.env_mode.value} mode)"
    )
    return HttpBackendClient(
        base_url=settings.backend_base_url,
        timeout=settings.backend_timeout_seconds,
    )


def reset_backend_client() -> None:
    """
    Clear the cached backend client instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_backend_client.cache_clear()
    logger.debug("Backend client cache cleared")


__all__ = [
    "get_backend_client",
    "reset_backend_client",
    "BaseBackendClient",
    "ZoneValidationResult",
    "TableDetectionResult",
    "TableOption",
    "MockBackendClient",
    "HttpBackendClient",
]
