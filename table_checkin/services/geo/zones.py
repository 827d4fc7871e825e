"""
Zone Validator

Decides whether a coordinate is inside an active service zone by asking the
venue backend. An out-of-zone verdict is a fact, not a fault: it is never
retried. Transient backend failures are.

Author: Your Name
Version: 1.0.0
"""

import logging
from typing import Optional

from table_checkin.exceptions import NetworkError, OutOfZone
from table_checkin.schemas import Coordinate
from table_checkin.services.backend.base import BaseBackendClient, ZoneValidationResult
from table_checkin.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


def is_transient_network_error(error: Exception) -> bool:
    return isinstance(error, NetworkError) and error.is_transient


class ZoneValidator:
    """
    Zone membership check backed by the venue backend.

    Example:
        >>> validator = ZoneValidator(get_backend_client())
        >>> zone = (await validator.ensure_inside(coord)).zone
    """

    def __init__(self, backend: BaseBackendClient, retry: Optional[RetryPolicy] = None):
        self.backend = backend
        self.retry = retry

    async def validate(self, coord: Coordinate) -> ZoneValidationResult:
        """Return the backend verdict, retrying transient failures."""
        if self.retry is None:
            result = await self.backend.validate_zone(coord)
        else:
            result = await self.retry.run(
                lambda: self.backend.validate_zone(coord),
                retry_on=is_transient_network_error,
                label="Zone validation",
            )

        zone_name = result.zone.name if result.zone else None
        logger.debug(f"Zone check ({coord.latitude:.6f}, {coord.longitude:.6f}): valid={result.is_valid} zone={zone_name}")
        return result

    async def ensure_inside(self, coord: Coordinate) -> ZoneValidationResult:
        """
        Validate and raise when outside every zone.

        Raises:
            OutOfZone: Position is outside all service zones
        """
        result = await self.validate(coord)
        if not result.is_valid:
            raise OutOfZone(result.message)
        return result
