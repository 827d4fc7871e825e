"""
Check-in Flow

Facade tying resolution, arbitration and session establishment into one
explicit state machine for the host UI:

    idle -> resolving -> table_detected  -> establishing -> logged_in
                      -> table_selection -> (select_table) -> table_detected
                      -> error (retry with any method)

Usage:
    from table_checkin.services.checkin import get_checkin_flow

    flow = get_checkin_flow()
    decision = await flow.resolve_qr(scanned_text)
    if not decision.is_confirmed:
        flow.select_table(chosen_id)
    handoff = await flow.establish("Ana")

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from enum import Enum
from functools import lru_cache
from typing import Optional

from table_checkin.core.config import Settings, get_settings
from table_checkin.exceptions import (
    Ambiguous,
    CheckinError,
    FlowInProgress,
    InvalidDisplayName,
)
from table_checkin.schemas import ClientSessionRecord, Coordinate, ResolutionMethod
from table_checkin.services.backend import get_backend_client
from table_checkin.services.backend.base import BaseBackendClient
from table_checkin.services.geo import get_geo_sampler
from table_checkin.services.geo.base import BaseGeoSampler
from table_checkin.services.geo.zones import ZoneValidator
from table_checkin.services.resolution.arbiter import ArbitrationDecision, ResolutionArbiter
from table_checkin.services.resolution.base import BaseResolver
from table_checkin.services.resolution.matcher import TableMatcher
from table_checkin.services.resolution.resolvers import GeoResolver, ManualResolver, QrResolver
from table_checkin.services.retry import RetryPolicy
from table_checkin.services.session import get_session_store
from table_checkin.services.session.orchestrator import (
    HandoffCallback,
    SessionHandoff,
    SessionOrchestrator,
    SessionRequest,
)
from table_checkin.services.session.presence import ZonePresenceMonitor
from table_checkin.services.session.store import BaseSessionStore

logger = logging.getLogger(__name__)


class CheckinStatus(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    TABLE_DETECTED = "table_detected"
    TABLE_SELECTION = "table_selection"
    ERROR = "error"
    ESTABLISHING = "establishing"
    LOGGED_IN = "logged_in"


class CheckinFlow:
    """
    One device's check-in state.

    Attributes:
        status: Current CheckinStatus
        decision: Last arbitration decision
        last_error: Last error raised by resolution or establishment
        presence: Zone presence monitor, once started
    """

    def __init__(
        self,
        backend: BaseBackendClient,
        sampler: BaseGeoSampler,
        store: BaseSessionStore,
        zone_validator: ZoneValidator,
        qr_resolver: QrResolver,
        geo_resolver: GeoResolver,
        manual_resolver: ManualResolver,
        arbiter: ResolutionArbiter,
        orchestrator: SessionOrchestrator,
        presence_interval_seconds: float = 10.0,
        presence_grace_seconds: float = 3.0,
    ):
        self.backend = backend
        self.sampler = sampler
        self.store = store
        self.zone_validator = zone_validator
        self.qr_resolver = qr_resolver
        self.geo_resolver = geo_resolver
        self.manual_resolver = manual_resolver
        self.arbiter = arbiter
        self.orchestrator = orchestrator
        self.presence_interval_seconds = presence_interval_seconds
        self.presence_grace_seconds = presence_grace_seconds

        self.status = CheckinStatus.LOGGED_IN if store.load() else CheckinStatus.IDLE
        self.decision: Optional[ArbitrationDecision] = None
        self.last_error: Optional[CheckinError] = None
        self.presence: Optional[ZonePresenceMonitor] = None
        self._settling: Optional[asyncio.Task] = None

    @property
    def guidance(self) -> Optional[str]:
        """Text to show the customer for the current state."""
        if self.status == CheckinStatus.ERROR and self.last_error is not None:
            return self.last_error.guidance
        if self.decision is not None:
            return self.decision.guidance
        return None

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _ensure_not_busy(self) -> None:
        if self.status in (CheckinStatus.RESOLVING, CheckinStatus.ESTABLISHING):
            raise FlowInProgress()

    async def _resolve(self, resolver: BaseResolver, signal) -> ArbitrationDecision:
        self._ensure_not_busy()
        self.status = CheckinStatus.RESOLVING
        self.decision = None
        self.last_error = None

        try:
            outcome = await resolver.resolve(signal)
            decision = await self.arbiter.arbitrate(outcome)
        except CheckinError as e:
            self.status = CheckinStatus.ERROR
            self.last_error = e
            logger.info(f"{resolver.method.value} resolution failed ({e.code}): {e}")
            raise
        except asyncio.CancelledError:
            self.status = CheckinStatus.IDLE
            raise

        self.decision = decision
        self.status = (
            CheckinStatus.TABLE_DETECTED if decision.is_confirmed
            else CheckinStatus.TABLE_SELECTION
        )
        return decision

    async def resolve_qr(self, payload: str) -> ArbitrationDecision:
        """Resolve a scanned QR payload."""
        return await self._resolve(self.qr_resolver, payload)

    async def resolve_geo(self, coord: Optional[Coordinate] = None) -> ArbitrationDecision:
        """Resolve the current (or a given) position."""
        return await self._resolve(self.geo_resolver, coord)

    async def resolve_manual(self, entry: str) -> ArbitrationDecision:
        """Resolve a typed table number."""
        return await self._resolve(self.manual_resolver, entry)

    def select_table(self, table_id: str) -> ArbitrationDecision:
        """
        Confirm the customer's pick from the offered tables.

        Raises:
            Ambiguous: Nothing offered, or the id is not among the options
        """
        if self.decision is None or self.status != CheckinStatus.TABLE_SELECTION:
            raise Ambiguous("No table selection is pending")
        self.decision = self.arbiter.confirm_selection(self.decision, table_id)
        self.status = CheckinStatus.TABLE_DETECTED
        return self.decision

    # -------------------------------------------------------------------------
    # Establishment
    # -------------------------------------------------------------------------

    async def establish(self, display_name: str) -> SessionHandoff:
        """
        Create the customer and table session for the confirmed table.

        Raises:
            Ambiguous: No table confirmed yet
            InvalidDisplayName: Name too short (state unchanged)
            CustomerCreateFailed / SessionCreateFailed: Attempt aborted
        """
        self._ensure_not_busy()
        if self.decision is None:
            raise Ambiguous("Resolve a table before starting a session")
        table = self.decision.require_table()

        location = None
        if self.decision.method == ResolutionMethod.GEO:
            location = self.geo_resolver.last_coordinate

        request = SessionRequest(
            table=table,
            display_name=display_name,
            method=self.decision.method,
            distance_m=self.decision.distance_m,
            location=location,
        )

        previous = self.status
        self.status = CheckinStatus.ESTABLISHING
        try:
            handoff = await self.orchestrator.establish(request)
        except InvalidDisplayName:
            self.status = previous
            raise
        except CheckinError as e:
            self.status = CheckinStatus.ERROR
            self.last_error = e
            raise
        except asyncio.CancelledError:
            self._settling = asyncio.ensure_future(self._settle_after_cancel())
            raise

        self.status = CheckinStatus.LOGGED_IN
        self.last_error = None
        return handoff

    async def wait_settled(self) -> None:
        """Wait until a flow whose caller was cancelled has settled its status."""
        if self._settling is not None:
            await self._settling

    async def _settle_after_cancel(self) -> None:
        await self.orchestrator.wait_idle()
        self.status = CheckinStatus.LOGGED_IN if self.store.load() else CheckinStatus.ERROR

    def current_session(self) -> Optional[ClientSessionRecord]:
        """The persisted session, if the customer is seated."""
        return self.store.load()

    # -------------------------------------------------------------------------
    # Leaving
    # -------------------------------------------------------------------------

    async def logout(self, reason: Optional[str] = None, zone: Optional[str] = None) -> None:
        """
        End the session.

        The backend session is ended best-effort; the local record is always
        removed (archived with the exit reason when one is given).
        """
        record = self.store.load()
        if record is not None:
            try:
                await self.backend.end_table_session(record.session_id)
            except CheckinError as e:
                logger.warning(f"Could not end table session {record.session_id}: {e}")

        if reason:
            self.store.record_exit(reason, zone)
        else:
            self.store.clear()

        if self.presence is not None:
            self.presence.stop()
            self.presence = None

        self.status = CheckinStatus.IDLE
        self.decision = None
        logger.info(f"Customer logged out{f' ({reason})' if reason else ''}")

    def start_presence_monitoring(self) -> ZonePresenceMonitor:
        """Watch the zone while seated; leaving it logs the customer out."""
        if self.presence is None:
            self.presence = ZonePresenceMonitor(
                sampler=self.sampler,
                zone_validator=self.zone_validator,
                on_exit=self.logout,
                interval_seconds=self.presence_interval_seconds,
                grace_seconds=self.presence_grace_seconds,
            )
        self.presence.start()
        return self.presence


def build_checkin_flow(
    backend: BaseBackendClient,
    sampler: BaseGeoSampler,
    store: BaseSessionStore,
    settings: Optional[Settings] = None,
    on_handoff: Optional[HandoffCallback] = None,
) -> CheckinFlow:
    """Assemble a CheckinFlow from its collaborators and settings."""
    settings = settings or get_settings()

    def read_retry() -> RetryPolicy:
        # One policy per call site; attempt counters are not shared
        return RetryPolicy(
            max_attempts=settings.geo_max_attempts,
            delay_seconds=settings.geo_retry_delay_seconds,
        )

    zone_validator = ZoneValidator(backend, retry=read_retry())
    matcher = TableMatcher(
        epsilon_m=settings.ambiguity_epsilon_m,
        fallback_radius_m=settings.fallback_radius_m,
        default_radius_m=settings.default_detection_radius_m,
        widen_by_accuracy=settings.widen_radius_by_accuracy,
    )

    return CheckinFlow(
        backend=backend,
        sampler=sampler,
        store=store,
        zone_validator=zone_validator,
        qr_resolver=QrResolver(backend, restaurant_id=settings.restaurant_id, retry=read_retry()),
        geo_resolver=GeoResolver(
            sampler=sampler,
            zone_validator=zone_validator,
            backend=backend,
            matcher=matcher,
            scan_radius_m=settings.scan_radius_m,
            server_side_detection=settings.server_side_detection,
            retry=read_retry(),
        ),
        manual_resolver=ManualResolver(backend, retry=read_retry()),
        arbiter=ResolutionArbiter(confirm_delay_seconds=settings.confirm_delay_seconds),
        orchestrator=SessionOrchestrator(backend, store, on_handoff=on_handoff),
        presence_interval_seconds=settings.presence_interval_seconds,
        presence_grace_seconds=settings.presence_grace_seconds,
    )


@lru_cache()
def get_checkin_flow() -> CheckinFlow:
    """
    Get the configured check-in flow.

    Uses the configured backend client, position source and session store.
    """
    flow = build_checkin_flow(
        backend=get_backend_client(),
        sampler=get_geo_sampler(),
        store=get_session_store(),
    )
    logger.info(f"Check-in flow ready (backend={flow.backend.provider_name}, geo={flow.sampler.provider_name})")
    return flow


def reset_checkin_flow() -> None:
    """Clear the cached check-in flow."""
    get_checkin_flow.cache_clear()
