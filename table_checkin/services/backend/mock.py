"""
Mock Venue Backend Implementation

In-memory stand-in for the venue API. Used in development mode
(ENV_MODE=development), by the venue emulator and by the tests.

Behavior:
    - Zones and tables are held in memory; customers and sessions are
      created with generated ids
    - Foreign keys are enforced: a session needs an existing customer
    - Simulates network latency and a random failure rate
    - Individual operations can be forced to fail (``fail_operations``)
    - Every call is recorded in ``calls`` in the order it was made

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
import random
import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from table_checkin.exceptions import NetworkError
from table_checkin.geometry import distance_between
from table_checkin.schemas import (
    ArrivalNotification,
    Coordinate,
    Customer,
    ResolutionMethod,
    Table,
    TableSession,
    Zone,
)
from table_checkin.services.backend.base import (
    BaseBackendClient,
    TableDetectionResult,
    TableOption,
    ZoneValidationResult,
)

logger = logging.getLogger(__name__)


class MockBackendClient(BaseBackendClient):
    """
    Mock implementation of the venue backend.

    Attributes:
        zones: Service zones
        tables: Tables keyed by id
        restaurant_id: Restaurant the QR codes belong to
        failure_rate: Probability of a simulated outage (0.0-1.0)
        fail_operations: Operation names that always fail
        calls: Operation names in call order
        customers: Created customers keyed by id
        sessions: Created table sessions keyed by id
        notifications: Staff notifications received

    Example:
        >>> backend = MockBackendClient.with_demo_venue()
        >>> table = await backend.lookup_table_by_number("5")
        >>> print(table.number)
        5
    """

    # Demo venue centre (NYC)
    VENUE_CENTER_LAT = 40.7128
    VENUE_CENTER_LNG = -74.0060

    # Server-side detection tuning
    CONFIDENT_GAP_M = 3.0
    DEFAULT_GPS_ACCURACY_M = 30.0
    DEFAULT_TABLE_RADIUS_M = 0.9144
    SCAN_RADIUS_M = 200.0

    def __init__(
        self,
        zones: Iterable[Zone] = (),
        tables: Iterable[Table] = (),
        restaurant_id: str = "default",
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        fail_operations: Optional[Iterable[str]] = None,
    ):
        self.zones = list(zones)
        self.tables = {table.id: table for table in tables}
        self.restaurant_id = restaurant_id
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.fail_operations = set(fail_operations or ())

        self.calls: list[str] = []
        self.customers: dict[str, Customer] = {}
        self.sessions: dict[str, TableSession] = {}
        self.ended_sessions: set[str] = set()
        self.notifications: list[ArrivalNotification] = []

        logger.info(
            f"MockBackendClient initialized "
            f"(zones={len(self.zones)}, tables={len(self.tables)}, "
            f"failure_rate={failure_rate:.0%})"
        )

    @classmethod
    def with_demo_venue(cls, **kwargs) -> "MockBackendClient":
        """
        Build a backend seeded with one circular zone and six tables.

        Tables are ~3.3 m apart along a north-south line. Tables 3 and 4
        share one GPS point, as happens when coordinates are captured from
        the same spot during setup.
        """
        zone = Zone(
            id="zone-main",
            name="Main Hall",
            center=Coordinate(latitude=cls.VENUE_CENTER_LAT, longitude=cls.VENUE_CENTER_LNG),
            radius_m=150.0,
        )
        step = 0.00003
        tables = []
        for number in range(1, 7):
            offset = 3 if number == 4 else number
            tables.append(
                Table(
                    id=f"table-{number}",
                    number=number,
                    capacity_seats=4,
                    location=Coordinate(
                        latitude=round(cls.VENUE_CENTER_LAT + offset * step, 7),
                        longitude=cls.VENUE_CENTER_LNG,
                    ),
                    detection_radius_m=1.0,
                )
            )
        return cls(zones=[zone], tables=tables, **kwargs)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return self.failure_rate > 0 and random.random() < self.failure_rate

    async def _enter(self, operation: str) -> None:
        """Record the call, wait, and raise if this call should fail."""
        self.calls.append(operation)
        await self._simulate_latency()

        if operation in self.fail_operations:
            logger.debug(f"Mock: Forced failure for {operation}")
            raise NetworkError(
                f"Simulated {operation} failure",
                status_code=503,
                operation=operation,
            )
        if self._should_fail():
            logger.debug(f"Mock: Simulated outage for {operation}")
            raise NetworkError(
                "Venue service temporarily unavailable",
                status_code=None,
                operation=operation,
            )

    def _rank(self, coord: Coordinate, radius_m: float) -> list[TableOption]:
        options = [
            TableOption(table=table, distance_m=distance_between(coord, table.location))
            for table in self.tables.values()
            if table.location is not None
        ]
        return sorted(
            (option for option in options if option.distance_m <= radius_m),
            key=lambda option: option.distance_m,
        )

    # -------------------------------------------------------------------------
    # Read-only lookups
    # -------------------------------------------------------------------------

    async def validate_zone(self, coord: Coordinate) -> ZoneValidationResult:
        """Validate against in-memory zone boundaries."""
        await self._enter("validate_zone")

        matching = [z for z in self.zones if z.contains(coord.latitude, coord.longitude)]
        if not matching:
            logger.debug(f"Mock: ({coord.latitude}, {coord.longitude}) outside all zones")
            return ZoneValidationResult(
                is_valid=False,
                message="You are outside the cafe zone. Please come closer to login.",
            )

        return ZoneValidationResult(
            is_valid=True,
            zone=matching[0],
            message="Location validated successfully",
        )

    async def detect_table(self, coord: Coordinate) -> TableDetectionResult:
        """
        Per-table radius plus gap analysis.

        effective radius = max(table radius, GPS accuracy); the closest table
        wins only when the runner-up is at least CONFIDENT_GAP_M further away.
        """
        await self._enter("detect_table")

        accuracy = coord.accuracy_m or self.DEFAULT_GPS_ACCURACY_M
        in_radius = [
            option for option in self._rank(coord, self.SCAN_RADIUS_M)
            if option.distance_m <= max(
                option.table.detection_radius_m or self.DEFAULT_TABLE_RADIUS_M,
                accuracy,
            )
        ]

        if not in_radius:
            raise NetworkError(
                f"You're not within any table's detection zone. "
                f"GPS accuracy: ±{round(accuracy)}m. "
                f"Please move closer to your table or scan the QR code.",
                status_code=400,
                operation="detect_table",
            )

        best = in_radius[0]
        if len(in_radius) == 1:
            return TableDetectionResult(
                needs_selection=False,
                table=best.table,
                confidence="high",
                distance_m=best.distance_m,
            )

        gap = in_radius[1].distance_m - best.distance_m
        if gap >= self.CONFIDENT_GAP_M:
            if best.distance_m < 5:
                confidence = "high"
            elif best.distance_m < 20:
                confidence = "medium"
            else:
                confidence = "low"
            return TableDetectionResult(
                needs_selection=False,
                table=best.table,
                confidence=confidence,
                distance_m=best.distance_m,
            )

        ambiguous = [
            option for option in in_radius
            if option.distance_m - best.distance_m < self.CONFIDENT_GAP_M
        ]
        logger.debug(f"Mock: {len(ambiguous)} tables within gap threshold")
        return TableDetectionResult(
            needs_selection=True,
            options=ambiguous,
            confidence="low",
            message="Multiple nearby tables detected. Please select your table or scan the QR code.",
        )

    async def list_nearby_tables(
        self,
        coord: Coordinate,
        radius_m: float,
    ) -> list[TableOption]:
        """Tables within radius, nearest first."""
        await self._enter("list_nearby_tables")
        return self._rank(coord, radius_m)

    async def verify_qr_table(self, table_id: str, restaurant_id: str) -> Table:
        await self._enter("verify_qr_table")

        table = self.tables.get(table_id)
        if table is None:
            raise NetworkError("Table not found", status_code=404, operation="verify_qr_table")
        if restaurant_id != self.restaurant_id:
            raise NetworkError(
                "QR code does not belong to this restaurant",
                status_code=403,
                operation="verify_qr_table",
            )
        return table

    async def lookup_table_by_number(self, number: str) -> Table:
        await self._enter("lookup_table_by_number")

        digits = re.search(r"\d+", number or "")
        if digits:
            wanted = int(digits.group())
            for table in self.tables.values():
                if table.number == wanted:
                    return table

        raise NetworkError("Table not found", status_code=404, operation="lookup_table_by_number")

    # -------------------------------------------------------------------------
    # Session establishment
    # -------------------------------------------------------------------------

    async def create_customer(
        self,
        name: str,
        table_number: int,
        table_id: str,
        method: ResolutionMethod,
    ) -> Customer:
        await self._enter("create_customer")

        customer = Customer(
            id=f"cust_mock_{uuid.uuid4().hex[:12]}",
            display_name=name,
            method=ResolutionMethod(method).value,
            table_number=table_number,
        )
        self.customers[customer.id] = customer
        logger.info(f"Mock: Customer created - {name} (ID: {customer.id})")
        return customer

    async def start_table_session(
        self,
        table_id: str,
        customer_id: str,
        table_number: int,
        customer_name: str,
        method: ResolutionMethod,
        location: Optional[Coordinate] = None,
    ) -> TableSession:
        await self._enter("start_table_session")

        if customer_id not in self.customers:
            raise NetworkError("Customer not found", status_code=400, operation="start_table_session")
        if table_id not in self.tables:
            raise NetworkError("Table not found", status_code=404, operation="start_table_session")

        session = TableSession(
            id=f"sess_mock_{uuid.uuid4().hex[:12]}",
            table_id=table_id,
            customer_id=customer_id,
            table_number=table_number,
            started_at=datetime.now(timezone.utc),
        )
        self.sessions[session.id] = session
        logger.info(f"Mock: Session started at Table {table_number} (ID: {session.id})")
        return session

    async def link_customer_session(self, customer_id: str, session_id: str) -> None:
        await self._enter("link_customer_session")

        customer = self.customers.get(customer_id)
        if customer is None:
            raise NetworkError("Customer not found", status_code=404, operation="link_customer_session")
        customer.session_id = session_id

    async def notify_staff_arrival(self, notification: ArrivalNotification) -> None:
        await self._enter("notify_staff_arrival")

        self.notifications.append(notification)
        logger.info(f"Mock: Staff notified - {notification.message}")

    async def end_table_session(self, session_id: str) -> None:
        await self._enter("end_table_session")

        if session_id not in self.sessions:
            raise NetworkError("Session not found", status_code=404, operation="end_table_session")
        self.ended_sessions.add(session_id)

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
