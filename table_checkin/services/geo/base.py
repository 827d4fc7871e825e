"""
Geo Sampler Abstract Base Class

Defines the interface contract for position sources.
Both MockGeoSampler and DevicePositionSampler implement ``_read_position``;
the base class bounds every read with a timeout and applies retries.

Failure modes (typed):
    - PermissionDenied: never retried, the user must act
    - PositionUnavailable: retried
    - LocationTimeout: retried

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from table_checkin.exceptions import LocationTimeout, PositionUnavailable
from table_checkin.schemas import Coordinate
from table_checkin.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


def is_retryable_position_error(error: Exception) -> bool:
    return isinstance(error, (PositionUnavailable, LocationTimeout))


class BaseGeoSampler(ABC):
    """
    Abstract base class for position sources.

    Args:
        timeout_seconds: Upper bound on a single read
        retry: Optional retry policy for unavailable/timed-out reads

    Example:
        >>> sampler = get_geo_sampler()
        >>> coord = await sampler.sample()
        >>> print(coord.latitude, coord.longitude)
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        retry: Optional[RetryPolicy] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.retry = retry

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the position source.

        Returns:
            str: Provider name (e.g., "mock", "device")
        """
        pass

    @abstractmethod
    async def _read_position(self) -> Coordinate:
        """Obtain one position fix. May block until the source answers."""
        pass

    async def read_once(self) -> Coordinate:
        """
        One bounded read.

        Raises:
            LocationTimeout: No fix within ``timeout_seconds``
            PermissionDenied / PositionUnavailable: From the source
        """
        try:
            return await asyncio.wait_for(self._read_position(), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise LocationTimeout(
                f"No position fix within {self.timeout_seconds:.0f}s"
            ) from e

    async def sample(self) -> Coordinate:
        """Read a position, retrying transient failures when a policy is set."""
        if self.retry is None:
            coord = await self.read_once()
        else:
            coord = await self.retry.run(
                self.read_once,
                retry_on=is_retryable_position_error,
                label="Position sample",
            )
        logger.debug(
            f"{self.provider_name}: fix ({coord.latitude:.6f}, {coord.longitude:.6f}) "
            f"±{coord.accuracy_m}m"
        )
        return coord
