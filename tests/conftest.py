"""Pytest configuration and fixtures."""

import asyncio
import math
from typing import Optional

import pytest

from table_checkin.core.config import Settings
from table_checkin.geometry import EARTH_RADIUS_M
from table_checkin.schemas import Coordinate, Table, Zone
from table_checkin.services.backend.mock import MockBackendClient
from table_checkin.services.checkin import CheckinFlow, build_checkin_flow
from table_checkin.services.geo.mock import MockGeoSampler
from table_checkin.services.session.store import InMemorySessionStore

CENTER_LAT = 40.7128
CENTER_LNG = -74.0060


# ============================================================================
# Geometry helpers
# ============================================================================

def north_of_center(meters: float) -> float:
    """Latitude ``meters`` due north of the venue centre (exact along the meridian)."""
    return CENTER_LAT + math.degrees(meters / EARTH_RADIUS_M)


def coord_at(meters: float, accuracy_m: Optional[float] = 5.0) -> Coordinate:
    return Coordinate(latitude=north_of_center(meters), longitude=CENTER_LNG, accuracy_m=accuracy_m)


def make_table(number: int, meters: Optional[float], radius_m: Optional[float] = 1.0) -> Table:
    """Table ``number`` placed ``meters`` north of the centre (None = no location)."""
    return Table(
        id=f"table-{number}",
        number=number,
        capacity_seats=4,
        location=coord_at(meters, accuracy_m=None) if meters is not None else None,
        detection_radius_m=radius_m,
    )


def make_zone(radius_m: float = 150.0) -> Zone:
    return Zone(
        id="zone-main",
        name="Main Hall",
        center=Coordinate(latitude=CENTER_LAT, longitude=CENTER_LNG),
        radius_m=radius_m,
    )


class GatedBackend(MockBackendClient):
    """Holds start_table_session until the gate opens."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.reached = asyncio.Event()

    async def start_table_session(self, *args, **kwargs):
        self.reached.set()
        await self.gate.wait()
        return await super().start_table_session(*args, **kwargs)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings with every delay zeroed."""
    return Settings(
        env_mode="development",
        confirm_delay_seconds=0.0,
        geo_retry_delay_seconds=0.0,
        presence_grace_seconds=0.0,
        mock_failure_rate=0.0,
        mock_min_latency=0.0,
        mock_max_latency=0.0,
    )


@pytest.fixture
def row_tables() -> list[Table]:
    """Tables 1-6 in a line, 3 m apart; table 5 sits 15 m north of the centre."""
    return [make_table(n, n * 3.0) for n in range(1, 7)]


@pytest.fixture
def venue(row_tables) -> MockBackendClient:
    """In-memory venue with one circular zone and the row of tables."""
    return MockBackendClient(zones=[make_zone()], tables=row_tables)


@pytest.fixture
def twin_venue() -> MockBackendClient:
    """Tables 3 and 4 share one point; every other table is far away."""
    tables = [
        make_table(3, 10.0),
        make_table(4, 10.0),
        make_table(1, 60.0),
        make_table(7, 90.0),
    ]
    return MockBackendClient(zones=[make_zone()], tables=tables)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def sampler() -> MockGeoSampler:
    """Device parked exactly on table 5 of ``row_tables``."""
    return MockGeoSampler(latitude=north_of_center(15.0), longitude=CENTER_LNG, accuracy_m=5.0)


@pytest.fixture
def flow(venue, sampler, store, settings) -> CheckinFlow:
    return build_checkin_flow(backend=venue, sampler=sampler, store=store, settings=settings)
