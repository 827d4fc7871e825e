"""
HTTP Venue Backend Implementation

Production client for the venue REST API. Used when ENV_MODE=production
or ENV_MODE=staging.

Requirements:
    - BACKEND_BASE_URL must be set in environment

Wire format:
    - Responses may be wrapped as {"success": true, "data": {...}}
    - Entity ids arrive as "_id" or "id"
    - Table locations arrive flat or as GeoJSON points

Author: Your Name
Version: 1.0.0
"""

import logging
from typing import Any, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from table_checkin.exceptions import NetworkError
from table_checkin.schemas import (
    ArrivalNotification,
    Coordinate,
    CreateCustomerRequest,
    Customer,
    LinkSessionRequest,
    LocationRequest,
    ResolutionMethod,
    StartSessionRequest,
    Table,
    TableSession,
    VerifyQrRequest,
    Zone,
)
from table_checkin.services.backend.base import (
    BaseBackendClient,
    TableDetectionResult,
    TableOption,
    ZoneValidationResult,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _unwrap(payload: Any) -> Any:
    """Strip the {"success": ..., "data": ...} envelope if present."""
    if isinstance(payload, dict) and "data" in payload and (
        "success" in payload or len(payload) == 1
    ):
        return payload["data"]
    return payload


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or body.get("error")
        if isinstance(message, str):
            return message
    return response.reason_phrase


def _parse(model: Type[ModelT], data: Any, operation: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise NetworkError(
            f"Malformed {operation} response: {e.error_count()} invalid field(s)",
            operation=operation,
        ) from e


def _with_known_fields(data: Any, **fields: tuple) -> Any:
    """
    Fill fields the server left out with values the client sent.

    Each keyword maps a wire key to (value, *other accepted keys); the value
    is used only when none of those keys is present. A created session is
    identified by its id alone.
    """
    if not isinstance(data, dict):
        return data
    filled = dict(data)
    for key, (value, *aliases) in fields.items():
        if not any(filled.get(name) is not None for name in (key, *aliases)):
            filled[key] = value
    return filled


def _location_body(coord: Coordinate) -> dict:
    return LocationRequest(
        latitude=coord.latitude,
        longitude=coord.longitude,
        accuracy=coord.accuracy_m,
    ).to_wire()


class HttpBackendClient(BaseBackendClient):
    """
    httpx-based venue backend client.

    Args:
        base_url: Venue API root, e.g. "https://venue.example.com/api"
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass an ASGITransport)

    Example:
        >>> async with HttpBackendClient("http://localhost:5000") as backend:
        ...     table = await backend.lookup_table_by_number("5")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError(
                "BACKEND_BASE_URL is required for staging/production mode. "
                "Set it in your .env file or environment variables."
            )

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        logger.info(f"HttpBackendClient initialized ({base_url})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "http"

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and return the unwrapped JSON body."""
        logger.debug(f"HTTP: {method} {path} ({operation})")

        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{operation} timed out", operation=operation) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{operation} failed: {e}", operation=operation) from e

        if response.is_error:
            message = _error_message(response)
            logger.debug(f"HTTP: {operation} -> {response.status_code} {message}")
            raise NetworkError(message, status_code=response.status_code, operation=operation)

        if not response.content:
            return {}
        try:
            return _unwrap(response.json())
        except ValueError as e:
            raise NetworkError(
                f"{operation} returned non-JSON body",
                status_code=response.status_code,
                operation=operation,
            ) from e

    def _parse_options(self, items: Any) -> list[TableOption]:
        options = []
        for item in items or []:
            if "table" in item and isinstance(item["table"], dict):
                table_data, distance = item["table"], item.get("distance")
            else:
                table_data, distance = item, item.get("distance")
            table = _parse(Table, table_data, "list_nearby_tables")
            options.append(TableOption(table=table, distance_m=float(distance or 0.0)))
        return sorted(options, key=lambda option: option.distance_m)

    # -------------------------------------------------------------------------
    # Read-only lookups
    # -------------------------------------------------------------------------

    async def validate_zone(self, coord: Coordinate) -> ZoneValidationResult:
        data = await self._request(
            "validate_zone", "POST", "/zones/validate-location", json=_location_body(coord)
        )

        zone_data = data.get("primaryZone") or data.get("zone")
        return ZoneValidationResult(
            is_valid=bool(data.get("isValid", False)),
            zone=_parse(Zone, zone_data, "validate_zone") if zone_data else None,
            message=data.get("message"),
        )

    async def detect_table(self, coord: Coordinate) -> TableDetectionResult:
        data = await self._request(
            "detect_table", "POST", "/tables/detect", json=_location_body(coord)
        )

        if data.get("needsSelection"):
            return TableDetectionResult(
                needs_selection=True,
                options=self._parse_options(data.get("tables")),
                message=data.get("message"),
            )

        detection = data.get("detection") or {}
        return TableDetectionResult(
            needs_selection=False,
            table=_parse(Table, data.get("table"), "detect_table"),
            confidence=detection.get("confidence"),
            distance_m=detection.get("distance"),
        )

    async def list_nearby_tables(
        self,
        coord: Coordinate,
        radius_m: float,
    ) -> list[TableOption]:
        data = await self._request(
            "list_nearby_tables",
            "GET",
            "/tables/nearby",
            params={
                "latitude": coord.latitude,
                "longitude": coord.longitude,
                "radius": radius_m,
            },
        )
        items = data.get("tables") if isinstance(data, dict) else data
        return self._parse_options(items)

    async def verify_qr_table(self, table_id: str, restaurant_id: str) -> Table:
        body = VerifyQrRequest(table_id=table_id, restaurant_id=restaurant_id).to_wire()
        data = await self._request("verify_qr_table", "POST", "/tables/verify-qr", json=body)
        return _parse(Table, data.get("table", data), "verify_qr_table")

    async def lookup_table_by_number(self, number: str) -> Table:
        data = await self._request(
            "lookup_table_by_number", "GET", f"/tables/number/{quote(number, safe='')}"
        )
        return _parse(Table, data.get("table", data), "lookup_table_by_number")

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
        body = CreateCustomerRequest(
            name=name,
            table_number=table_number,
            table_id=table_id,
            method=method,
        ).to_wire()
        data = await self._request("create_customer", "POST", "/customers", json=body)
        return _parse(Customer, data.get("customer", data), "create_customer")

    async def start_table_session(
        self,
        table_id: str,
        customer_id: str,
        table_number: int,
        customer_name: str,
        method: ResolutionMethod,
        location: Optional[Coordinate] = None,
    ) -> TableSession:
        body = StartSessionRequest(
            table=table_id,
            customer=customer_id,
            table_number=table_number,
            customer_name=customer_name,
            method=method,
            location=LocationRequest(
                latitude=location.latitude,
                longitude=location.longitude,
                accuracy=location.accuracy_m,
            ) if location else None,
        ).to_wire()
        data = await self._request(
            "start_table_session", "POST", "/table-sessions/start", json=body
        )
        session_data = data.get("session") or data.get("tableSession") or data
        session_data = _with_known_fields(
            session_data,
            tableId=(table_id, "table_id", "table"),
            customerId=(customer_id, "customer_id", "customer"),
            tableNumber=(table_number, "table_number"),
        )
        return _parse(TableSession, session_data, "start_table_session")

    async def link_customer_session(self, customer_id: str, session_id: str) -> None:
        body = LinkSessionRequest(session_id=session_id).to_wire()
        await self._request(
            "link_customer_session", "PUT", f"/customers/{customer_id}", json=body
        )

    async def notify_staff_arrival(self, notification: ArrivalNotification) -> None:
        await self._request(
            "notify_staff_arrival",
            "POST",
            "/requests/customer-arrived",
            json=notification.to_wire(),
        )

    async def end_table_session(self, session_id: str) -> None:
        await self._request(
            "end_table_session", "POST", f"/table-sessions/{session_id}/end"
        )

    async def health_check(self) -> bool:
        """Check if the venue API answers /health."""
        try:
            await self._request("health_check", "GET", "/health")
            return True
        except NetworkError as e:
            logger.error(f"HTTP: Health check failed - {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
