"""
Zone Presence Monitor

While a customer is seated, periodically re-samples the position and checks
it against the service zones. Leaving the zone starts a grace period;
staying out past it logs the customer out with reason ``zone_exit``.
Re-entering before the grace period ends cancels the pending logout.

Sampling and validation errors are logged and never log anyone out.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from table_checkin.exceptions import CheckinError
from table_checkin.services.geo.base import BaseGeoSampler
from table_checkin.services.geo.zones import ZoneValidator

logger = logging.getLogger(__name__)

ZONE_EXIT_REASON = "zone_exit"

ExitCallback = Callable[[str, Optional[str]], Awaitable[None]]


class ZonePresenceMonitor:
    """
    Periodic zone check with auto-logout.

    Args:
        sampler: Position source
        zone_validator: Zone membership check
        on_exit: Coroutine called as on_exit(reason, zone_name) at logout
        interval_seconds: Time between checks
        grace_seconds: Time outside the zone before logout

    Example:
        >>> monitor = ZonePresenceMonitor(sampler, validator, flow.logout)
        >>> monitor.start()
    """

    def __init__(
        self,
        sampler: BaseGeoSampler,
        zone_validator: ZoneValidator,
        on_exit: ExitCallback,
        interval_seconds: float = 10.0,
        grace_seconds: float = 3.0,
    ):
        self.sampler = sampler
        self.zone_validator = zone_validator
        self.on_exit = on_exit
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds

        self.in_zone: Optional[bool] = None
        self.last_zone: Optional[str] = None
        self.warning_shown = False
        self.logged_out = False
        self._grace_task: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def pending_logout(self) -> Optional[asyncio.Task]:
        """Grace-period task, if a logout is scheduled."""
        if self._grace_task is not None and not self._grace_task.done():
            return self._grace_task
        return None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def check(self) -> Optional[bool]:
        """
        Run one presence check.

        Returns:
            True/False for in/out of zone, None if the check failed
        """
        try:
            coord = await self.sampler.sample()
            result = await self.zone_validator.validate(coord)
        except CheckinError as e:
            logger.warning(f"Presence check failed ({e.code}): {e}")
            return None

        if result.is_valid:
            self._on_inside(result.zone.name if result.zone else None)
        else:
            self._on_outside()
        return self.in_zone

    def _on_inside(self, zone_name: Optional[str]) -> None:
        if self.pending_logout is not None:
            self._grace_task.cancel()
            logger.info("Customer re-entered the zone, logout cancelled")
        self._grace_task = None
        self.in_zone = True
        self.last_zone = zone_name
        self.warning_shown = False

    def _on_outside(self) -> None:
        self.in_zone = False
        if not self.warning_shown:
            logger.warning(
                f"Customer left the zone, session ends in {self.grace_seconds:.0f}s "
                f"unless they return"
            )
            self.warning_shown = True
        if self.pending_logout is None and not self.logged_out:
            self._grace_task = asyncio.ensure_future(self._logout_after_grace(self.last_zone))

    async def _logout_after_grace(self, zone_name: Optional[str]) -> None:
        await asyncio.sleep(self.grace_seconds)
        logger.warning(f"Auto-logout: outside the zone for {self.grace_seconds:.0f}s")
        self.logged_out = True
        await self.on_exit(ZONE_EXIT_REASON, zone_name)
        self.stop()

    async def _run(self) -> None:
        while not self.logged_out:
            await self.check()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Begin periodic checks in the background."""
        if self.is_running:
            return
        self.logged_out = False
        self.warning_shown = False
        self._loop_task = asyncio.ensure_future(self._run())
        logger.info(f"Zone presence monitoring started (every {self.interval_seconds:.0f}s)")

    def stop(self) -> None:
        """Stop checking. A pending logout is cancelled unless it is running."""
        current = asyncio.current_task()
        if self._loop_task is not None and self._loop_task is not current:
            self._loop_task.cancel()
        if self.pending_logout is not None and self._grace_task is not current:
            self._grace_task.cancel()
        self._loop_task = None
        logger.debug("Zone presence monitoring stopped")
