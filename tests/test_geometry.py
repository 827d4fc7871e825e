"""Tests for distance and zone boundary geometry."""

import pytest

from table_checkin.geometry import (
    distance_between,
    haversine_m,
    is_inside_polygon,
    is_within_radius,
)
from table_checkin.schemas import Coordinate, Table, Zone

from tests.conftest import CENTER_LAT, CENTER_LNG, coord_at, north_of_center


class TestHaversine:
    """Great-circle distance."""

    def test_same_point_is_zero(self):
        assert haversine_m(CENTER_LAT, CENTER_LNG, CENTER_LAT, CENTER_LNG) == 0.0

    def test_one_degree_of_latitude(self):
        distance = haversine_m(0.0, 0.0, 1.0, 0.0)
        assert distance == pytest.approx(111_194.93, abs=0.01)

    def test_symmetric(self):
        a = (CENTER_LAT, CENTER_LNG)
        b = (51.5074, -0.1278)
        assert haversine_m(*a, *b) == pytest.approx(haversine_m(*b, *a))

    def test_known_city_pair(self):
        # New York -> London, about 5,570 km
        distance = haversine_m(CENTER_LAT, CENTER_LNG, 51.5074, -0.1278)
        assert distance == pytest.approx(5_570_000, rel=0.01)

    def test_distance_between_uses_coordinates(self):
        assert distance_between(coord_at(0.0), coord_at(12.5)) == pytest.approx(12.5, abs=1e-6)

    def test_within_radius_is_inclusive(self):
        lat = north_of_center(10.0)
        assert is_within_radius(lat, CENTER_LNG, CENTER_LAT, CENTER_LNG, 10.001)
        assert not is_within_radius(lat, CENTER_LNG, CENTER_LAT, CENTER_LNG, 9.99)


class TestPolygon:
    """Ray-casting point-in-polygon."""

    SQUARE = [
        Coordinate(latitude=0.0, longitude=0.0),
        Coordinate(latitude=0.0, longitude=1.0),
        Coordinate(latitude=1.0, longitude=1.0),
        Coordinate(latitude=1.0, longitude=0.0),
    ]

    def test_inside(self):
        assert is_inside_polygon(0.5, 0.5, self.SQUARE)

    def test_outside(self):
        assert not is_inside_polygon(1.5, 0.5, self.SQUARE)
        assert not is_inside_polygon(0.5, -0.1, self.SQUARE)

    def test_fewer_than_three_vertices_contains_nothing(self):
        assert not is_inside_polygon(0.0, 0.0, self.SQUARE[:2])


class TestZone:
    """Zone boundaries and backend parsing."""

    def test_circle_contains(self):
        zone = Zone(
            id="z1",
            name="Hall",
            center=Coordinate(latitude=CENTER_LAT, longitude=CENTER_LNG),
            radius_m=50.0,
        )
        assert zone.contains(north_of_center(49.0), CENTER_LNG)
        assert not zone.contains(north_of_center(51.0), CENTER_LNG)

    def test_polygon_takes_precedence(self):
        zone = Zone(id="z2", name="Patio", polygon=TestPolygon.SQUARE)
        assert zone.contains(0.5, 0.5)
        assert not zone.contains(2.0, 2.0)

    def test_zone_without_boundary_contains_nothing(self):
        assert not Zone(id="z3", name="Empty").contains(CENTER_LAT, CENTER_LNG)

    def test_parses_backend_document(self):
        zone = Zone.model_validate({
            "_id": {"$oid": "65f0c0ffee"},
            "name": "Terrace",
            "location": {
                "center": {"type": "Point", "coordinates": [CENTER_LNG, CENTER_LAT]},
                "radius": 30,
            },
        })
        assert zone.id == "65f0c0ffee"
        assert zone.radius_m == 30
        assert zone.center.latitude == CENTER_LAT
        assert zone.contains(north_of_center(29.0), CENTER_LNG)


class TestTableParsing:
    """Table documents from the venue backend."""

    def test_geojson_location_and_aliases(self):
        table = Table.model_validate({
            "_id": 42,
            "tableNumber": 5,
            "capacity": 6,
            "location": {"type": "Point", "coordinates": [CENTER_LNG, CENTER_LAT]},
            "detectionRadiusMeters": 1.5,
        })
        assert table.id == "42"
        assert table.number == 5
        assert table.capacity_seats == 6
        assert table.location.longitude == CENTER_LNG
        assert table.detection_radius_m == 1.5

    def test_wire_round_trip(self):
        table = Table(id="t1", number=3, location=coord_at(4.0), detection_radius_m=1.0)
        parsed = Table.model_validate(table.to_wire())
        assert parsed.id == "t1"
        assert parsed.location.latitude == pytest.approx(table.location.latitude)
