"""
Pydantic Schemas for Check-in Entities and Backend Payloads

Reference data (zones, tables) and server-created records (customers,
table sessions) are parsed leniently: the venue backend sends Mongo-style
``_id`` keys, camelCase names and GeoJSON points, while Python callers use
snake_case field names.

The client-owned ``ClientSessionRecord`` serializes with camelCase keys so
the persisted document matches what every ordering feature reads.

Author: Your Name
Version: 1.0.0
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from table_checkin.geometry import haversine_m, is_inside_polygon


# =============================================================================
# ENUMS
# =============================================================================

class ResolutionMethod(str, Enum):
    """Signal used to identify the table."""
    QR = "qr"
    GEO = "geo"
    MANUAL = "manual"


class Confidence(str, Enum):
    """Qualitative certainty of a table match."""
    HIGH = "high"
    LOW = "low"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_id(v: Any) -> Any:
    # Backends send ObjectId strings, ints, {"$oid": ...} or populated documents
    if isinstance(v, dict) and "$oid" in v:
        return v["$oid"]
    if isinstance(v, dict) and "_id" in v:
        return _coerce_id(v["_id"])
    if isinstance(v, int):
        return str(v)
    return v


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Coordinate(BaseModel):
    """A single position fix. Immutable."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_m: Optional[float] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("accuracy_m", "accuracy", "accuracyMeters"),
    )

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"latitude": self.latitude, "longitude": self.longitude}
        if self.accuracy_m is not None:
            data["accuracy"] = self.accuracy_m
        return data


def _point_to_coordinate(value: Any) -> Any:
    """Accept GeoJSON ``{"type": "Point", "coordinates": [lng, lat]}``."""
    if isinstance(value, dict) and value.get("type") == "Point":
        lng, lat = value["coordinates"][:2]
        return {"latitude": lat, "longitude": lng}
    return value


class Zone(BaseModel):
    """
    Service area where check-in is permitted.

    The boundary is a polygon when three or more vertices are given,
    otherwise a circle around ``center``.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str
    center: Optional[Coordinate] = None
    radius_m: Optional[float] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("radius_m", "radius"),
    )
    polygon: list[Coordinate] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def flatten_location(cls, data: Any) -> Any:
        # Backend nests the boundary under "location"
        if isinstance(data, dict) and isinstance(data.get("location"), dict):
            location = data["location"]
            data = {k: v for k, v in data.items() if k != "location"}
            data.setdefault("center", _point_to_coordinate(location.get("center")))
            data.setdefault("radius", location.get("radius"))
            data.setdefault("polygon", location.get("polygon") or [])
        return data

    coerce_id = field_validator("id", mode="before")(_coerce_id)

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check if a point is inside this zone's boundary."""
        if len(self.polygon) >= 3:
            return is_inside_polygon(latitude, longitude, self.polygon)
        if self.center is None or self.radius_m is None:
            return False
        distance = haversine_m(latitude, longitude, self.center.latitude, self.center.longitude)
        return distance <= self.radius_m

    def to_wire(self) -> dict[str, Any]:
        location: dict[str, Any] = {"polygon": [p.to_wire() for p in self.polygon]}
        if self.center is not None:
            location["center"] = self.center.to_wire()
        if self.radius_m is not None:
            location["radius"] = self.radius_m
        return {"_id": self.id, "name": self.name, "location": location}


class Table(BaseModel):
    """Physical table. Reference entity owned by the venue backend."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    number: int = Field(..., validation_alias=AliasChoices("number", "tableNumber"))
    capacity_seats: int = Field(
        default=4,
        ge=0,
        validation_alias=AliasChoices("capacity_seats", "capacitySeats", "capacity"),
    )
    location: Optional[Coordinate] = None
    detection_radius_m: Optional[float] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("detection_radius_m", "detectionRadiusMeters", "radius"),
    )

    coerce_id = field_validator("id", mode="before")(_coerce_id)

    @field_validator("location", mode="before")
    @classmethod
    def accept_geojson(cls, v: Any) -> Any:
        return _point_to_coordinate(v)

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "_id": self.id,
            "number": self.number,
            "capacity": self.capacity_seats,
        }
        if self.location is not None:
            data["location"] = {
                "type": "Point",
                "coordinates": [self.location.longitude, self.location.latitude],
            }
        if self.detection_radius_m is not None:
            data["radius"] = self.detection_radius_m
        return data


# =============================================================================
# SERVER-CREATED RECORDS
# =============================================================================

class Customer(BaseModel):
    """Customer created server-side; the client keeps only the id."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    display_name: str = Field(..., validation_alias=AliasChoices("display_name", "name"))
    method: Optional[str] = None
    table_number: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("table_number", "tableNumber"),
    )
    session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("session_id", "sessionId"),
    )

    coerce_id = field_validator("id", mode="before")(_coerce_id)


class TableSession(BaseModel):
    """Authoritative link between a physical table and a customer."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    table_id: str = Field(..., validation_alias=AliasChoices("table_id", "tableId", "table"))
    customer_id: str = Field(..., validation_alias=AliasChoices("customer_id", "customerId", "customer"))
    table_number: int = Field(..., validation_alias=AliasChoices("table_number", "tableNumber"))
    started_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("started_at", "startedAt", "createdAt"),
    )

    coerce_ids = field_validator("id", "table_id", "customer_id", mode="before")(_coerce_id)


# =============================================================================
# CLIENT-OWNED STATE
# =============================================================================

class ClientSessionRecord(BaseModel):
    """
    The one entity the device persists.

    Written only after both the customer and the table session exist;
    every later ordering action requires it.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_id: str
    customer_name: str
    table_id: str
    table_number: int
    session_id: str
    method: ResolutionMethod
    login_time: datetime = Field(default_factory=_utcnow)
    distance_meters: Optional[float] = None

    def to_storage(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# REQUEST SCHEMAS (venue backend wire format)
# =============================================================================

class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LocationRequest(_WireModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)


class VerifyQrRequest(_WireModel):
    table_id: str
    restaurant_id: str = "default"


class CreateCustomerRequest(_WireModel):
    name: str = Field(..., min_length=2, max_length=100)
    table_number: int
    table_id: str
    method: ResolutionMethod


class StartSessionRequest(_WireModel):
    table: str
    customer: str
    table_number: int
    customer_name: str
    method: ResolutionMethod
    location: Optional[LocationRequest] = None


class LinkSessionRequest(_WireModel):
    session_id: str


class ArrivalNotification(_WireModel):
    """Staff alert sent once the customer is seated."""
    table_id: str
    table_number: int
    customer_id: str
    customer_name: str
    session_id: str
    message: str
    type: str = "customer_arrival"
