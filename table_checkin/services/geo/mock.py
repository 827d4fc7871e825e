"""
Mock Geo Sampler Implementation

Simulates a device GPS without hardware. Used in development mode
(ENV_MODE=development), by the simulation script and by the tests.

Behavior:
    - Reports a configured position, optionally jittered by a few meters
    - Can be moved (``move_to``) to simulate walking in and out of a zone
    - Can be told to fail with a typed error (``fail_with``)
    - Simulates fix latency and a random "position unavailable" rate

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
import math
import random
from typing import Optional

from table_checkin.exceptions import PositionUnavailable, ResolutionError
from table_checkin.schemas import Coordinate
from table_checkin.services.geo.base import BaseGeoSampler
from table_checkin.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Meters per degree of latitude
METERS_PER_DEGREE = 111_320.0


class MockGeoSampler(BaseGeoSampler):
    """
    Mock implementation of the position source.

    Attributes:
        latitude / longitude: Current simulated position
        accuracy_m: Reported accuracy radius
        jitter_m: Maximum random offset applied to each fix
        failure_rate: Probability of PositionUnavailable (0.0-1.0)
        reads: Number of fixes requested

    Example:
        >>> sampler = MockGeoSampler(latitude=40.7128, longitude=-74.0060)
        >>> coord = await sampler.sample()
    """

    def __init__(
        self,
        latitude: float,
        longitude: float,
        accuracy_m: Optional[float] = 5.0,
        jitter_m: float = 0.0,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        timeout_seconds: float = 10.0,
        retry: Optional[RetryPolicy] = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds, retry=retry)
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy_m = accuracy_m
        self.jitter_m = jitter_m
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.reads = 0
        self._errors: list[ResolutionError] = []

        logger.info(
            f"MockGeoSampler initialized "
            f"(position=({latitude:.6f}, {longitude:.6f}), jitter={jitter_m}m, "
            f"failure_rate={failure_rate:.0%})"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def move_to(self, latitude: float, longitude: float) -> None:
        """Change the simulated position."""
        self.latitude = latitude
        self.longitude = longitude

    def fail_with(self, *errors: ResolutionError) -> None:
        """Queue errors returned by the next reads, one per read."""
        self._errors.extend(errors)

    def _jitter(self) -> tuple[float, float]:
        if self.jitter_m <= 0:
            return self.latitude, self.longitude
        d_lat = random.uniform(-self.jitter_m, self.jitter_m) / METERS_PER_DEGREE
        d_lng = random.uniform(-self.jitter_m, self.jitter_m) / (
            METERS_PER_DEGREE * math.cos(math.radians(self.latitude))
        )
        return round(self.latitude + d_lat, 7), round(self.longitude + d_lng, 7)

    async def _read_position(self) -> Coordinate:
        self.reads += 1
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

        if self._errors:
            raise self._errors.pop(0)
        if self.failure_rate > 0 and random.random() < self.failure_rate:
            logger.debug("Mock: Simulated position unavailable")
            raise PositionUnavailable("Simulated GPS outage")

        latitude, longitude = self._jitter()
        return Coordinate(latitude=latitude, longitude=longitude, accuracy_m=self.accuracy_m)
