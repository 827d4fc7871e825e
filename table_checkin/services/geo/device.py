"""
Device Position Sampler

Production position source. The host (UI shell or device bridge) owns the
actual geolocation API and pushes results in:

    sampler.report_position(Coordinate(...))
    sampler.report_error(1)   # W3C code: 1 denied, 2 unavailable, 3 timeout

``sample()`` opens a request and waits for the next report, bounded by
``geo_timeout_seconds``.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from typing import Optional

from table_checkin.exceptions import (
    LocationTimeout,
    PermissionDenied,
    PositionUnavailable,
    ResolutionError,
)
from table_checkin.schemas import Coordinate
from table_checkin.services.geo.base import BaseGeoSampler

logger = logging.getLogger(__name__)

# W3C GeolocationPositionError codes
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

_ERRORS_BY_CODE = {
    PERMISSION_DENIED: PermissionDenied,
    POSITION_UNAVAILABLE: PositionUnavailable,
    TIMEOUT: LocationTimeout,
}


class DevicePositionSampler(BaseGeoSampler):
    """Position source fed by the host device."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pending: Optional[asyncio.Future] = None
        logger.info(f"DevicePositionSampler initialized (timeout={self.timeout_seconds}s)")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "device"

    @property
    def has_pending_request(self) -> bool:
        """True while a sample is waiting for the host to report."""
        return self._pending is not None and not self._pending.done()

    async def _read_position(self) -> Coordinate:
        self._pending = asyncio.get_running_loop().create_future()
        try:
            return await self._pending
        finally:
            self._pending = None

    def report_position(self, coord: Coordinate) -> bool:
        """
        Deliver a fix to the waiting sample.

        Returns:
            bool: False if nothing was waiting
        """
        if not self.has_pending_request:
            logger.debug("Device: position report with no pending request ignored")
            return False
        self._pending.set_result(coord)
        return True

    def report_error(self, code: int, message: Optional[str] = None) -> bool:
        """Deliver a W3C geolocation error code to the waiting sample."""
        if not self.has_pending_request:
            logger.debug(f"Device: error {code} with no pending request ignored")
            return False
        error_cls: type[ResolutionError] = _ERRORS_BY_CODE.get(code, PositionUnavailable)
        self._pending.set_exception(error_cls(message))
        return True
