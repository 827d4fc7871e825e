"""
Venue Backend Abstract Base Class

Defines the interface contract for every venue backend implementation.
Both MockBackendClient and HttpBackendClient must implement these methods.

Operations:
    - Zone validation for a coordinate
    - Table detection / nearby listing by location
    - QR verification and lookup by table number
    - Customer creation, table session start, customer ↔ session link
    - Staff arrival notification
    - Ending a table session

Failures are raised as ``NetworkError`` carrying the HTTP status (or None
for transport failures) so callers can tell rejections from outages.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from table_checkin.schemas import (
    ArrivalNotification,
    Coordinate,
    Customer,
    ResolutionMethod,
    Table,
    TableSession,
    Zone,
)


@dataclass(frozen=True)
class TableOption:
    """A table paired with its distance from the sampled position."""
    table: Table
    distance_m: float

    def to_dict(self) -> dict:
        return {"table": self.table.to_wire(), "distance": self.distance_m}


@dataclass
class ZoneValidationResult:
    """
    Result of checking a coordinate against the service zones.

    Attributes:
        is_valid: Whether check-in is permitted at this position
        zone: Primary zone containing the position
        message: Human-readable explanation
    """
    is_valid: bool
    zone: Optional[Zone] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "isValid": self.is_valid,
            "primaryZone": self.zone.to_wire() if self.zone else None,
            "message": self.message,
        }


@dataclass
class TableDetectionResult:
    """
    Server-side table match.

    Either a single ``table`` with a confidence and distance, or
    ``needs_selection`` with the ranked ``options``.
    """
    needs_selection: bool
    table: Optional[Table] = None
    confidence: Optional[str] = None
    distance_m: Optional[float] = None
    options: list[TableOption] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        if self.needs_selection:
            return {
                "needsSelection": True,
                "tables": [option.to_dict() for option in self.options],
                "message": self.message,
            }
        return {
            "needsSelection": False,
            "table": self.table.to_wire() if self.table else None,
            "detection": {
                "confidence": self.confidence,
                "distance": self.distance_m,
            },
        }


class BaseBackendClient(ABC):
    """
    Abstract base class for venue backend clients.

    Example:
        >>> backend = get_backend_client()
        >>> result = await backend.validate_zone(coord)
        >>> if result.is_valid:
        ...     print(result.zone.name)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the backend provider.

        Returns:
            str: Provider name (e.g., "mock", "http")
        """
        pass

    # -------------------------------------------------------------------------
    # Read-only lookups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def validate_zone(self, coord: Coordinate) -> ZoneValidationResult:
        """Check whether a coordinate lies inside an active service zone."""
        pass

    @abstractmethod
    async def detect_table(self, coord: Coordinate) -> TableDetectionResult:
        """Ask the backend to match the coordinate to a table."""
        pass

    @abstractmethod
    async def list_nearby_tables(
        self,
        coord: Coordinate,
        radius_m: float,
    ) -> list[TableOption]:
        """List tables within ``radius_m`` of the coordinate, nearest first."""
        pass

    @abstractmethod
    async def verify_qr_table(self, table_id: str, restaurant_id: str) -> Table:
        """Confirm a QR-encoded table exists and belongs to the restaurant."""
        pass

    @abstractmethod
    async def lookup_table_by_number(self, number: str) -> Table:
        """Find a table by the number printed on it."""
        pass

    # -------------------------------------------------------------------------
    # Session establishment
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_customer(
        self,
        name: str,
        table_number: int,
        table_id: str,
        method: ResolutionMethod,
    ) -> Customer:
        """Create the customer record. Must precede the table session."""
        pass

    @abstractmethod
    async def start_table_session(
        self,
        table_id: str,
        customer_id: str,
        table_number: int,
        customer_name: str,
        method: ResolutionMethod,
        location: Optional[Coordinate] = None,
    ) -> TableSession:
        """Open a table session for an existing customer."""
        pass

    @abstractmethod
    async def link_customer_session(self, customer_id: str, session_id: str) -> None:
        """Store the session id on the customer for reverse lookup."""
        pass

    @abstractmethod
    async def notify_staff_arrival(self, notification: ArrivalNotification) -> None:
        """Alert staff that a customer is seated."""
        pass

    @abstractmethod
    async def end_table_session(self, session_id: str) -> None:
        """Close a table session when the customer leaves."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the backend.

        Returns:
            bool: True if service is operational
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
