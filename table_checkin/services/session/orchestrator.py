"""
Session Orchestrator

Turns a confirmed table and a display name into a live ordering session.

Stages (strict order):
    1. CREATING_CUSTOMER   critical     -> CustomerCreateFailed
    2. CREATING_SESSION    critical     -> SessionCreateFailed
    3. LINKING_CUSTOMER    best-effort  (warning only)
    4. NOTIFYING_STAFF     best-effort  (warning only)
    5. PERSISTING_LOCALLY  commit point
    6. COMPLETE            hand-off to the menu

Nothing is written locally unless both critical stages succeed. Critical
stages are never retried here; a restart begins again at stage 1.

Once started, a flow runs to completion even if the caller is cancelled,
so the device and the backend agree on whether a session exists.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from table_checkin.exceptions import (
    CheckinError,
    CustomerCreateFailed,
    FlowInProgress,
    InvalidDisplayName,
    SessionCreateFailed,
)
from table_checkin.schemas import (
    ArrivalNotification,
    ClientSessionRecord,
    Coordinate,
    ResolutionMethod,
    Table,
)
from table_checkin.services.backend.base import BaseBackendClient
from table_checkin.services.session.store import BaseSessionStore

logger = logging.getLogger(__name__)

MIN_DISPLAY_NAME_LENGTH = 2


class SessionStage(str, Enum):
    IDLE = "idle"
    CREATING_CUSTOMER = "creating_customer"
    CREATING_SESSION = "creating_session"
    LINKING_CUSTOMER = "linking_customer"
    NOTIFYING_STAFF = "notifying_staff"
    PERSISTING_LOCALLY = "persisting_locally"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionRequest:
    """Input to a session flow."""
    table: Table
    display_name: str
    method: ResolutionMethod
    distance_m: Optional[float] = None
    location: Optional[Coordinate] = None


@dataclass(frozen=True)
class SessionHandoff:
    """What the menu subsystem receives once the customer is seated."""
    table_id: str
    table_number: int
    customer_id: str
    session_id: str
    method: ResolutionMethod
    record: ClientSessionRecord
    warnings: tuple[str, ...] = field(default_factory=tuple)


HandoffCallback = Callable[[SessionHandoff], Union[None, Awaitable[None]]]


def normalize_display_name(name: Optional[str]) -> str:
    """
    Trim and validate a display name.

    Raises:
        InvalidDisplayName: Shorter than two characters after trimming
    """
    trimmed = (name or "").strip()
    if len(trimmed) < MIN_DISPLAY_NAME_LENGTH:
        raise InvalidDisplayName(
            f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters"
        )
    return trimmed


class SessionOrchestrator:
    """
    Runs the session establishment flow.

    Attributes:
        stage: Current stage of the most recent flow
        stage_history: Stages entered by the most recent flow, in order
        warnings: Best-effort failures of the most recent flow

    Example:
        >>> orchestrator = SessionOrchestrator(backend, store)
        >>> handoff = await orchestrator.establish(
        ...     SessionRequest(table=table, display_name="Ana", method=ResolutionMethod.QR)
        ... )
    """

    def __init__(
        self,
        backend: BaseBackendClient,
        store: BaseSessionStore,
        on_handoff: Optional[HandoffCallback] = None,
    ):
        self.backend = backend
        self.store = store
        self.on_handoff = on_handoff
        self.stage = SessionStage.IDLE
        self.stage_history: list[SessionStage] = []
        self.warnings: list[str] = []
        self._inflight: Optional[asyncio.Task] = None

    @property
    def in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _enter(self, stage: SessionStage) -> None:
        self.stage = stage
        self.stage_history.append(stage)
        logger.info(f"Session flow: {stage.value}")

    async def establish(self, request: SessionRequest) -> SessionHandoff:
        """
        Run the full flow for a confirmed table.

        Raises:
            InvalidDisplayName: Before any remote call
            FlowInProgress: Another flow has not finished
            CustomerCreateFailed / SessionCreateFailed: Critical stage failed
        """
        display_name = normalize_display_name(request.display_name)
        if self.in_progress:
            raise FlowInProgress()

        self.stage_history = []
        self.warnings = []
        self._inflight = asyncio.ensure_future(self._run(request, display_name))
        self._inflight.add_done_callback(self._collect)
        return await asyncio.shield(self._inflight)

    def _collect(self, task: asyncio.Task) -> None:
        # Retrieves the outcome even when the caller was cancelled
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Session flow ended with {type(error).__name__}: {error}")

    async def wait_idle(self) -> None:
        """Wait for an in-flight flow (e.g. one whose caller was cancelled)."""
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)

    async def _run(self, request: SessionRequest, display_name: str) -> SessionHandoff:
        table = request.table
        method = ResolutionMethod(request.method)

        # 1. Customer
        self._enter(SessionStage.CREATING_CUSTOMER)
        try:
            customer = await self.backend.create_customer(
                name=display_name,
                table_number=table.number,
                table_id=table.id,
                method=method,
            )
        except CheckinError as e:
            self._fail(f"customer creation failed: {e}")
            raise CustomerCreateFailed(str(e)) from e
        if not customer.id:
            self._fail("customer creation returned no id")
            raise CustomerCreateFailed("Backend returned a customer without an id")

        # 2. Table session
        self._enter(SessionStage.CREATING_SESSION)
        try:
            session = await self.backend.start_table_session(
                table_id=table.id,
                customer_id=customer.id,
                table_number=table.number,
                customer_name=display_name,
                method=method,
                location=request.location,
            )
        except CheckinError as e:
            self._fail(f"table session failed: {e}")
            raise SessionCreateFailed(str(e)) from e
        if not session.id:
            self._fail("table session returned no id")
            raise SessionCreateFailed("Backend returned a session without an id")

        # 3. Back-link
        self._enter(SessionStage.LINKING_CUSTOMER)
        try:
            await self.backend.link_customer_session(customer.id, session.id)
        except CheckinError as e:
            self._warn(f"Could not link customer {customer.id} to session {session.id}: {e}")

        # 4. Staff notification
        self._enter(SessionStage.NOTIFYING_STAFF)
        notification = ArrivalNotification(
            table_id=table.id,
            table_number=table.number,
            customer_id=customer.id,
            customer_name=display_name,
            session_id=session.id,
            message=f"{display_name} has arrived at Table {table.number}",
        )
        try:
            await self.backend.notify_staff_arrival(notification)
        except CheckinError as e:
            self._warn(f"Staff notification failed: {e}")

        # 5. Commit
        self._enter(SessionStage.PERSISTING_LOCALLY)
        record = ClientSessionRecord(
            customer_id=customer.id,
            customer_name=display_name,
            table_id=table.id,
            table_number=table.number,
            session_id=session.id,
            method=method,
            distance_meters=request.distance_m,
        )
        self.store.save(record)

        self._enter(SessionStage.COMPLETE)
        handoff = SessionHandoff(
            table_id=table.id,
            table_number=table.number,
            customer_id=customer.id,
            session_id=session.id,
            method=method,
            record=record,
            warnings=tuple(self.warnings),
        )
        logger.info(
            f"✓ {display_name} seated at Table {table.number} "
            f"(session {session.id}, {len(self.warnings)} warning(s))"
        )

        if self.on_handoff is not None:
            result = self.on_handoff(handoff)
            if asyncio.iscoroutine(result):
                await result
        return handoff

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _fail(self, message: str) -> None:
        logger.error(f"Session flow aborted: {message}")
        self.stage = SessionStage.FAILED
        self.stage_history.append(SessionStage.FAILED)
