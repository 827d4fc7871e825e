"""
Venue Emulator - FastAPI Application Entry Point

Serves the venue backend API over HTTP on top of the in-memory
MockBackendClient, so devices, the simulation script and the HTTP client
tests can run without a live venue.

Endpoints:
    - POST /zones/validate-location
    - POST /tables/detect
    - GET  /tables/nearby
    - POST /tables/verify-qr
    - GET  /tables/number/{number}
    - POST /customers
    - PUT  /customers/{customer_id}
    - POST /table-sessions/start
    - POST /table-sessions/{session_id}/end
    - POST /requests/customer-arrived
    - GET  /health

Run:
    uvicorn table_checkin.main:app --port 5000

Author: Your Name
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from table_checkin.core.config import get_settings, setup_logging
from table_checkin.exceptions import CheckinError, NetworkError
from table_checkin.schemas import (
    ArrivalNotification,
    Coordinate,
    CreateCustomerRequest,
    Customer,
    LinkSessionRequest,
    LocationRequest,
    StartSessionRequest,
    TableSession,
    VerifyQrRequest,
)
from table_checkin.services.backend.mock import MockBackendClient

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@lru_cache()
def get_venue() -> MockBackendClient:
    """The emulated venue (demo zone and six tables)."""
    return MockBackendClient.with_demo_venue(
        restaurant_id=settings.restaurant_id,
        failure_rate=settings.mock_failure_rate,
        min_latency=settings.mock_min_latency,
        max_latency=settings.mock_max_latency,
    )


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name} venue emulator")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    venue = get_venue()
    logger.info(f"✅ Venue: {len(venue.zones)} zone(s), {len(venue.tables)} table(s)")
    logger.info(f"✅ Restaurant: {venue.restaurant_id}")
    logger.info(f"✅ Simulated failure rate: {venue.failure_rate:.0%}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Emulator ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    logger.info(
        f"✅ Served {len(venue.customers)} customer(s), "
        f"{len(venue.sessions)} session(s)"
    )


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=f"{settings.app_name} Venue Emulator",
    description="In-memory venue backend for table check-in development and testing.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def to_coordinate(location: LocationRequest) -> Coordinate:
    return Coordinate(
        latitude=location.latitude,
        longitude=location.longitude,
        accuracy_m=location.accuracy,
    )


def customer_wire(customer: Customer) -> dict[str, Any]:
    return {
        "_id": customer.id,
        "name": customer.display_name,
        "method": customer.method,
        "tableNumber": customer.table_number,
        "sessionId": customer.session_id,
    }


def session_wire(session: TableSession) -> dict[str, Any]:
    return {
        "_id": session.id,
        "table": session.table_id,
        "customer": session.customer_id,
        "tableNumber": session.table_number,
        "startedAt": session.started_at.isoformat(),
    }


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to the {settings.app_name} venue emulator",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get("/health", tags=["Health"], summary="System Health Check")
async def health_check(venue: MockBackendClient = Depends(get_venue)) -> dict[str, Any]:
    """Verify the emulated venue is operational."""
    healthy = await venue.health_check()
    return {
        "status": "operational" if healthy else "degraded",
        "backend": venue.provider_name,
        "zones": len(venue.zones),
        "tables": len(venue.tables),
        "timestamp": datetime.now().isoformat(),
    }


# =============================================================================
# ZONE & TABLE ENDPOINTS
# =============================================================================

@app.post("/zones/validate-location", tags=["Zones"])
async def validate_location(
    location: LocationRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    result = await venue.validate_zone(to_coordinate(location))
    return envelope(result.to_dict())


@app.post("/tables/detect", tags=["Tables"])
async def detect_table(
    location: LocationRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    result = await venue.detect_table(to_coordinate(location))
    return envelope(result.to_dict())


@app.get("/tables/nearby", tags=["Tables"])
async def nearby_tables(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(20.0, gt=0),
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    coord = Coordinate(latitude=latitude, longitude=longitude)
    options = await venue.list_nearby_tables(coord, radius)
    return envelope({"tables": [option.to_dict() for option in options]})


@app.post("/tables/verify-qr", tags=["Tables"])
async def verify_qr(
    body: VerifyQrRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    table = await venue.verify_qr_table(body.table_id, body.restaurant_id)
    return envelope({"table": table.to_wire()})


@app.get("/tables/number/{number}", tags=["Tables"])
async def table_by_number(
    number: str,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    table = await venue.lookup_table_by_number(number)
    return envelope({"table": table.to_wire()})


# =============================================================================
# CUSTOMER & SESSION ENDPOINTS
# =============================================================================

@app.post("/customers", status_code=201, tags=["Customers"])
async def create_customer(
    body: CreateCustomerRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    customer = await venue.create_customer(
        name=body.name,
        table_number=body.table_number,
        table_id=body.table_id,
        method=body.method,
    )
    return envelope({"customer": customer_wire(customer)})


@app.put("/customers/{customer_id}", tags=["Customers"])
async def link_customer(
    customer_id: str,
    body: LinkSessionRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    await venue.link_customer_session(customer_id, body.session_id)
    return envelope({"customer": customer_wire(venue.customers[customer_id])})


@app.post("/table-sessions/start", status_code=201, tags=["Sessions"])
async def start_session(
    body: StartSessionRequest,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    session = await venue.start_table_session(
        table_id=body.table,
        customer_id=body.customer,
        table_number=body.table_number,
        customer_name=body.customer_name,
        method=body.method,
        location=to_coordinate(body.location) if body.location else None,
    )
    return envelope({"session": session_wire(session)})


@app.post("/table-sessions/{session_id}/end", tags=["Sessions"])
async def end_session(
    session_id: str,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    await venue.end_table_session(session_id)
    return envelope({"sessionId": session_id, "ended": True})


@app.post("/requests/customer-arrived", status_code=201, tags=["Requests"])
async def customer_arrived(
    body: ArrivalNotification,
    venue: MockBackendClient = Depends(get_venue),
) -> dict[str, Any]:
    await venue.notify_staff_arrival(body)
    return envelope({"request": body.to_wire()})


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(CheckinError)
async def checkin_exception_handler(request: Request, exc: CheckinError) -> JSONResponse:
    """Map venue errors to JSON error responses."""
    status_code = 400
    if isinstance(exc, NetworkError):
        status_code = exc.status_code or 503
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "code": exc.code, "message": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "message": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
