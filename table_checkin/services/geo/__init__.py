"""
Geo Sampler Factory

Provides a single entry point for obtaining a position source.
Automatically selects Mock or Device based on ENV_MODE configuration.

Usage:
    from table_checkin.services.geo import get_geo_sampler

    sampler = get_geo_sampler()
    coord = await sampler.sample()

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from table_checkin.core.config import get_settings
from table_checkin.services.backend.mock import MockBackendClient
from table_checkin.services.geo.base import BaseGeoSampler
from table_checkin.services.geo.device import DevicePositionSampler
from table_checkin.services.geo.mock import MockGeoSampler
from table_checkin.services.geo.zones import ZoneValidator
from table_checkin.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


@lru_cache()
def get_geo_sampler() -> BaseGeoSampler:
    """
    Get the configured position source.

    Returns:
        BaseGeoSampler: MockGeoSampler parked near the demo tables in
        development, DevicePositionSampler otherwise
    """
    settings = get_settings()
    retry = RetryPolicy(
        max_attempts=settings.geo_max_attempts,
        delay_seconds=settings.geo_retry_delay_seconds,
    )

    if settings.is_development:
        logger.info("Geo Sampler: Using MockGeoSampler (development mode)")
        return MockGeoSampler(
            latitude=MockBackendClient.VENUE_CENTER_LAT + 0.00015,
            longitude=MockBackendClient.VENUE_CENTER_LNG,
            accuracy_m=5.0,
            jitter_m=0.3,
            failure_rate=settings.mock_failure_rate,
            min_latency=settings.mock_min_latency,
            max_latency=settings.mock_max_latency,
            timeout_seconds=settings.geo_timeout_seconds,
            retry=retry,
        )

    logger.info(
        f"Geo Sampler: Using DevicePositionSampler "
        f"({settings.env_mode.value} mode)"
    )
    return DevicePositionSampler(timeout_seconds=settings.geo_timeout_seconds, retry=retry)


def reset_geo_sampler() -> None:
    """
    Clear the cached position source.

    Useful for testing or when configuration changes at runtime.
    """
    get_geo_sampler.cache_clear()
    logger.debug("Geo sampler cache cleared")


__all__ = [
    "get_geo_sampler",
    "reset_geo_sampler",
    "BaseGeoSampler",
    "MockGeoSampler",
    "DevicePositionSampler",
    "ZoneValidator",
]
