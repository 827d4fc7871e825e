"""
Signal Resolvers

Three independent strategies for identifying the customer's table:

    - QrResolver: decode a scanned payload, verify it with the backend
    - GeoResolver: sample position, check the zone, match nearby tables
    - ManualResolver: look up a typed table number

Only one runs per attempt. Each either returns a candidate or a
disambiguation set, or raises a typed ResolutionError the customer can
recover from by retrying or switching method.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar
from urllib.parse import parse_qs, urlsplit

from table_checkin.exceptions import (
    InvalidPayload,
    NetworkError,
    NoNearbyTable,
    OutOfZone,
    TableNotFound,
    VerificationFailed,
)
from table_checkin.geometry import distance_between
from table_checkin.schemas import Confidence, Coordinate, ResolutionMethod
from table_checkin.services.backend.base import BaseBackendClient
from table_checkin.services.geo.base import BaseGeoSampler
from table_checkin.services.geo.zones import ZoneValidator, is_transient_network_error
from table_checkin.services.resolution.base import (
    BaseResolver,
    DisambiguationSet,
    ResolutionCandidate,
    ResolutionOutcome,
)
from table_checkin.services.resolution.matcher import TableMatcher
from table_checkin.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _read(
    retry: Optional[RetryPolicy],
    operation: Callable[[], Awaitable[T]],
    label: str,
) -> T:
    """Run a read-only backend call, retrying transient failures if allowed."""
    if retry is None:
        return await operation()
    return await retry.run(operation, retry_on=is_transient_network_error, label=label)


# =============================================================================
# QR
# =============================================================================

@dataclass(frozen=True)
class QrPayload:
    """Fields decoded from a scanned QR code."""
    raw: str
    table_id: str
    table_number: Optional[str] = None
    restaurant_id: Optional[str] = None


def _fields_from_url(text: str) -> Optional[dict]:
    parts = urlsplit(text)
    if not (parts.scheme and parts.netloc):
        return None
    return {key: values[0] for key, values in parse_qs(parts.query).items()}


def _fields_from_json(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _text(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_qr_payload(payload: str) -> QrPayload:
    """
    Decode a QR payload.

    Tries a URL with ``tableId`` / ``tableNumber`` / ``restaurantId`` query
    parameters first, then a JSON object with the same keys.

    Raises:
        InvalidPayload: Neither form, or no table id
    """
    text = (payload or "").strip()
    fields = _fields_from_url(text)
    if fields is None:
        fields = _fields_from_json(text)
    if fields is None:
        raise InvalidPayload(payload)

    table_id = _text(fields.get("tableId"))
    if table_id is None:
        raise InvalidPayload(payload, "QR code is missing the table id")

    return QrPayload(
        raw=payload,
        table_id=table_id,
        table_number=_text(fields.get("tableNumber")),
        restaurant_id=_text(fields.get("restaurantId")),
    )


class QrResolver(BaseResolver):
    """Resolve a scanned QR payload. Always HIGH confidence at distance 0."""

    method = ResolutionMethod.QR

    def __init__(
        self,
        backend: BaseBackendClient,
        restaurant_id: str = "default",
        retry: Optional[RetryPolicy] = None,
    ):
        self.backend = backend
        self.restaurant_id = restaurant_id
        self.retry = retry

    async def resolve(self, payload: str) -> ResolutionCandidate:
        """
        Raises:
            InvalidPayload: Payload could not be decoded
            VerificationFailed: Backend rejected the table or returned another one
            NetworkError: Backend unreachable
        """
        parsed = parse_qr_payload(payload)
        restaurant_id = parsed.restaurant_id or self.restaurant_id
        logger.info(f"QR scanned: tableId={parsed.table_id} restaurantId={restaurant_id}")

        try:
            table = await _read(
                self.retry,
                lambda: self.backend.verify_qr_table(parsed.table_id, restaurant_id),
                "QR verification",
            )
        except NetworkError as e:
            if e.is_rejection:
                raise VerificationFailed(e.message) from e
            raise

        if table.id != parsed.table_id:
            raise VerificationFailed(
                f"Backend verified table {table.id}, QR code names {parsed.table_id}"
            )

        logger.info(f"QR verified: Table {table.number}")
        return ResolutionCandidate(
            table=table,
            distance_m=0.0,
            method=ResolutionMethod.QR,
            confidence=Confidence.HIGH,
        )


# =============================================================================
# GEO
# =============================================================================

class GeoResolver(BaseResolver):
    """
    Resolve the customer's current position.

    Zone validation and the nearby-table listing run concurrently; a zone
    rejection wins over any listing failure.
    """

    method = ResolutionMethod.GEO

    def __init__(
        self,
        sampler: BaseGeoSampler,
        zone_validator: ZoneValidator,
        backend: BaseBackendClient,
        matcher: Optional[TableMatcher] = None,
        scan_radius_m: float = 20.0,
        server_side_detection: bool = False,
        retry: Optional[RetryPolicy] = None,
    ):
        self.sampler = sampler
        self.zone_validator = zone_validator
        self.backend = backend
        self.matcher = matcher or TableMatcher()
        self.scan_radius_m = scan_radius_m
        self.server_side_detection = server_side_detection
        self.retry = retry
        self.last_coordinate: Optional[Coordinate] = None

    async def resolve(self, signal: Optional[Coordinate] = None) -> ResolutionOutcome:
        """
        Sample (unless a coordinate is given) and resolve.

        Raises:
            PermissionDenied / PositionUnavailable / LocationTimeout: Sampling
            OutOfZone: Outside every service zone
            NoNearbyTable: No table within the fallback radius
        """
        coord = signal if signal is not None else await self.sampler.sample()
        self.last_coordinate = coord
        return await self.resolve_coordinate(coord)

    async def resolve_coordinate(self, coord: Coordinate) -> ResolutionOutcome:
        zone_result, nearby = await asyncio.gather(
            self.zone_validator.validate(coord),
            _read(
                self.retry,
                lambda: self.backend.list_nearby_tables(coord, self.scan_radius_m),
                "Nearby tables",
            ),
            return_exceptions=True,
        )

        if isinstance(zone_result, BaseException):
            raise zone_result
        if not zone_result.is_valid:
            logger.info(f"Position outside service zone: {zone_result.message}")
            raise OutOfZone(zone_result.message)

        if self.server_side_detection:
            outcome = await self._detect_on_server(coord)
            if outcome is not None:
                return outcome

        if isinstance(nearby, BaseException):
            raise nearby
        return self.matcher.match(coord, [option.table for option in nearby])

    async def _detect_on_server(self, coord: Coordinate) -> Optional[ResolutionOutcome]:
        """Server match, or None to fall back to local matching."""
        try:
            result = await self.backend.detect_table(coord)
        except NetworkError as e:
            if e.is_rejection and e.message:
                raise NoNearbyTable(e.message) from e
            logger.warning(f"Server-side detection failed, matching locally: {e}")
            return None

        if result.needs_selection:
            if not result.options:
                return None
            options = sorted(result.options, key=lambda option: option.distance_m)
            return DisambiguationSet(
                options=tuple(options),
                gps_ambiguous=self.matcher.is_gps_ambiguous(options),
                method=ResolutionMethod.GEO,
                message=result.message,
            )

        if result.table is None:
            return None

        distance = result.distance_m
        if distance is None and result.table.location is not None:
            distance = distance_between(coord, result.table.location)
        return ResolutionCandidate(
            table=result.table,
            distance_m=distance or 0.0,
            method=ResolutionMethod.GEO,
            confidence=Confidence.HIGH if result.confidence == "high" else Confidence.LOW,
        )


# =============================================================================
# MANUAL
# =============================================================================

class ManualResolver(BaseResolver):
    """Resolve a typed table number. Exact is HIGH, fuzzy is LOW."""

    method = ResolutionMethod.MANUAL

    def __init__(self, backend: BaseBackendClient, retry: Optional[RetryPolicy] = None):
        self.backend = backend
        self.retry = retry

    async def resolve(self, entry: str) -> ResolutionCandidate:
        """
        Raises:
            TableNotFound: Empty entry or no such table
            NetworkError: Backend unreachable
        """
        text = (entry or "").strip()
        if not text:
            raise TableNotFound(entry or "", "Please enter your table number")

        try:
            table = await _read(
                self.retry,
                lambda: self.backend.lookup_table_by_number(text),
                "Table lookup",
            )
        except NetworkError as e:
            if e.status_code == 404:
                raise TableNotFound(text) from e
            raise

        digits = re.sub(r"\D", "", text)
        exact = bool(digits) and int(digits) == table.number
        logger.info(f"Manual entry '{text}' -> Table {table.number} ({'exact' if exact else 'fuzzy'})")

        return ResolutionCandidate(
            table=table,
            distance_m=0.0,
            method=ResolutionMethod.MANUAL,
            confidence=Confidence.HIGH if exact else Confidence.LOW,
        )
