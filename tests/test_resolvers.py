"""Tests for the QR, GPS and manual resolvers."""

import json
from unittest.mock import AsyncMock

import pytest

from table_checkin.exceptions import (
    InvalidPayload,
    LocationTimeout,
    NetworkError,
    NoNearbyTable,
    OutOfZone,
    PermissionDenied,
    PositionUnavailable,
    TableNotFound,
    VerificationFailed,
)
from table_checkin.schemas import Confidence, ResolutionMethod
from table_checkin.services.backend.base import TableDetectionResult, TableOption
from table_checkin.services.geo.mock import MockGeoSampler
from table_checkin.services.geo.zones import ZoneValidator
from table_checkin.services.resolution.base import DisambiguationSet, ResolutionCandidate
from table_checkin.services.resolution.resolvers import (
    GeoResolver,
    ManualResolver,
    QrResolver,
    parse_qr_payload,
)
from table_checkin.services.retry import RetryPolicy

from tests.conftest import CENTER_LNG, coord_at, make_table, north_of_center


async def no_sleep(_delay: float) -> None:
    return None


# ============================================================================
# QR payload parsing
# ============================================================================

class TestParseQrPayload:
    """URL, JSON and plain-string payloads."""

    def test_url_with_query_parameters(self):
        parsed = parse_qr_payload(
            "https://cafe.example.com/checkin?tableId=table-5&tableNumber=5&restaurantId=cafe-1"
        )
        assert parsed.table_id == "table-5"
        assert parsed.table_number == "5"
        assert parsed.restaurant_id == "cafe-1"

    def test_url_without_restaurant_leaves_it_unset(self):
        parsed = parse_qr_payload("https://cafe.example.com/t?tableId=abc")
        assert parsed.table_id == "abc"
        assert parsed.restaurant_id is None

    def test_json_object(self):
        parsed = parse_qr_payload(json.dumps({"tableId": "table-2", "tableNumber": 2}))
        assert parsed.table_id == "table-2"
        assert parsed.table_number == "2"

    def test_plain_string_is_invalid(self):
        with pytest.raises(InvalidPayload) as exc_info:
            parse_qr_payload("TABLE FIVE")
        assert exc_info.value.code == "invalid_payload"

    def test_json_array_is_invalid(self):
        with pytest.raises(InvalidPayload):
            parse_qr_payload("[1, 2, 3]")

    def test_missing_table_id_is_invalid(self):
        with pytest.raises(InvalidPayload):
            parse_qr_payload("https://cafe.example.com/checkin?tableNumber=5")
        with pytest.raises(InvalidPayload):
            parse_qr_payload(json.dumps({"tableNumber": 5}))


# ============================================================================
# QR resolver
# ============================================================================

class TestQrResolver:
    """Verification against the backend."""

    @pytest.mark.asyncio
    async def test_verified_table_is_high_confidence_at_zero(self, venue):
        resolver = QrResolver(venue)
        outcome = await resolver.resolve('{"tableId": "table-5"}')

        assert outcome.table.number == 5
        assert outcome.confidence == Confidence.HIGH
        assert outcome.method == ResolutionMethod.QR
        assert outcome.distance_m == 0.0

    @pytest.mark.asyncio
    async def test_unknown_table_fails_verification(self, venue):
        with pytest.raises(VerificationFailed):
            await QrResolver(venue).resolve('{"tableId": "table-99"}')

    @pytest.mark.asyncio
    async def test_other_restaurant_fails_verification(self, venue):
        with pytest.raises(VerificationFailed):
            await QrResolver(venue).resolve(
                "https://x.example.com/?tableId=table-1&restaurantId=elsewhere"
            )

    @pytest.mark.asyncio
    async def test_configured_restaurant_is_the_default(self, row_tables):
        from table_checkin.services.backend.mock import MockBackendClient

        backend = MockBackendClient(tables=row_tables, restaurant_id="cafe-7")
        outcome = await QrResolver(backend, restaurant_id="cafe-7").resolve('{"tableId": "table-1"}')
        assert outcome.table.number == 1

    @pytest.mark.asyncio
    async def test_table_id_mismatch_fails_verification(self, venue, row_tables):
        venue.verify_qr_table = AsyncMock(return_value=row_tables[0])
        with pytest.raises(VerificationFailed):
            await QrResolver(venue).resolve('{"tableId": "table-5"}')

    @pytest.mark.asyncio
    async def test_transport_failure_stays_network_error(self, venue):
        venue.fail_operations.add("verify_qr_table")
        with pytest.raises(NetworkError):
            await QrResolver(venue).resolve('{"tableId": "table-5"}')


# ============================================================================
# Manual resolver
# ============================================================================

class TestManualResolver:
    """Typed table numbers."""

    @pytest.mark.asyncio
    async def test_exact_number_is_high(self, venue):
        outcome = await ManualResolver(venue).resolve("  5 ")
        assert outcome.table.number == 5
        assert outcome.confidence == Confidence.HIGH
        assert outcome.method == ResolutionMethod.MANUAL

    @pytest.mark.asyncio
    async def test_fuzzy_match_is_low(self, venue):
        venue.lookup_table_by_number = AsyncMock(return_value=make_table(12, 3.0))
        outcome = await ManualResolver(venue).resolve("21")
        assert outcome.table.number == 12
        assert outcome.confidence == Confidence.LOW

    @pytest.mark.asyncio
    async def test_empty_entry_is_not_found_without_lookup(self, venue):
        with pytest.raises(TableNotFound):
            await ManualResolver(venue).resolve("   ")
        assert venue.calls == []

    @pytest.mark.asyncio
    async def test_unknown_number_is_not_found(self, venue):
        with pytest.raises(TableNotFound) as exc_info:
            await ManualResolver(venue).resolve("42")
        assert exc_info.value.entry == "42"

    @pytest.mark.asyncio
    async def test_transient_lookup_failure_is_retried(self, venue, row_tables):
        venue.lookup_table_by_number = AsyncMock(
            side_effect=[NetworkError("down", status_code=503), row_tables[1]]
        )
        resolver = ManualResolver(venue, retry=RetryPolicy(3, 1.0, sleep=no_sleep))
        outcome = await resolver.resolve("2")
        assert outcome.table.number == 2
        assert venue.lookup_table_by_number.await_count == 2


# ============================================================================
# Geo resolver
# ============================================================================

def geo_resolver(venue, sampler, **kwargs) -> GeoResolver:
    return GeoResolver(
        sampler=sampler,
        zone_validator=ZoneValidator(venue),
        backend=venue,
        **kwargs,
    )


class TestGeoResolver:
    """Sample, validate zone, match."""

    @pytest.mark.asyncio
    async def test_on_table_five(self, venue, sampler):
        outcome = await geo_resolver(venue, sampler).resolve()

        assert isinstance(outcome, ResolutionCandidate)
        assert outcome.table.number == 5
        assert outcome.confidence == Confidence.HIGH
        assert set(venue.calls) == {"validate_zone", "list_nearby_tables"}

    @pytest.mark.asyncio
    async def test_outside_zone_is_hard_stop(self, venue):
        far = MockGeoSampler(latitude=north_of_center(500.0), longitude=CENTER_LNG)
        with pytest.raises(OutOfZone):
            await geo_resolver(venue, far).resolve()

    @pytest.mark.asyncio
    async def test_zone_rejection_wins_over_listing_failure(self, venue):
        venue.list_nearby_tables = AsyncMock(side_effect=NetworkError("boom", status_code=500))
        far = MockGeoSampler(latitude=north_of_center(500.0), longitude=CENTER_LNG)
        with pytest.raises(OutOfZone):
            await geo_resolver(venue, far).resolve()

    @pytest.mark.asyncio
    async def test_listing_failure_surfaces_when_inside(self, venue, sampler):
        venue.list_nearby_tables = AsyncMock(side_effect=NetworkError("boom", status_code=500))
        with pytest.raises(NetworkError):
            await geo_resolver(venue, sampler).resolve()

    @pytest.mark.asyncio
    async def test_no_table_nearby(self, venue):
        # Inside the 150 m zone, 100 m from every table
        lonely = MockGeoSampler(latitude=north_of_center(-100.0), longitude=CENTER_LNG)
        with pytest.raises(NoNearbyTable):
            await geo_resolver(venue, lonely).resolve()

    @pytest.mark.asyncio
    async def test_given_coordinate_skips_sampling(self, venue, sampler):
        outcome = await geo_resolver(venue, sampler).resolve(coord_at(6.0))
        assert outcome.table.number == 2
        assert sampler.reads == 0

    @pytest.mark.asyncio
    async def test_permission_denied_is_not_retried(self, venue, sampler):
        sampler.retry = RetryPolicy(3, 1.0, sleep=no_sleep)
        sampler.fail_with(PermissionDenied())
        with pytest.raises(PermissionDenied):
            await geo_resolver(venue, sampler).resolve()
        assert sampler.reads == 1

    @pytest.mark.asyncio
    async def test_unavailable_position_is_retried(self, venue, sampler):
        sampler.retry = RetryPolicy(3, 1.0, sleep=no_sleep)
        sampler.fail_with(PositionUnavailable(), LocationTimeout())
        outcome = await geo_resolver(venue, sampler).resolve()
        assert outcome.table.number == 5
        assert sampler.reads == 3


class TestServerSideDetection:
    """Backend match with local fallback."""

    @pytest.mark.asyncio
    async def test_medium_confidence_maps_to_low(self, venue, sampler, row_tables):
        venue.detect_table = AsyncMock(return_value=TableDetectionResult(
            needs_selection=False, table=row_tables[4], confidence="medium", distance_m=6.2,
        ))
        outcome = await geo_resolver(venue, sampler, server_side_detection=True).resolve()
        assert outcome.confidence == Confidence.LOW
        assert outcome.distance_m == 6.2

    @pytest.mark.asyncio
    async def test_needs_selection_becomes_disambiguation_set(self, venue, sampler, row_tables):
        venue.detect_table = AsyncMock(return_value=TableDetectionResult(
            needs_selection=True,
            options=[TableOption(row_tables[3], 0.52), TableOption(row_tables[2], 0.5)],
        ))
        outcome = await geo_resolver(venue, sampler, server_side_detection=True).resolve()
        assert isinstance(outcome, DisambiguationSet)
        assert outcome.gps_ambiguous is True
        assert outcome.table_ids == ["table-3", "table-4"]

    @pytest.mark.asyncio
    async def test_rejection_means_no_nearby_table(self, venue, sampler):
        venue.detect_table = AsyncMock(
            side_effect=NetworkError("You're not within any table's detection zone.", status_code=400)
        )
        with pytest.raises(NoNearbyTable):
            await geo_resolver(venue, sampler, server_side_detection=True).resolve()

    @pytest.mark.asyncio
    async def test_outage_falls_back_to_local_matching(self, venue, sampler):
        venue.fail_operations.add("detect_table")
        outcome = await geo_resolver(venue, sampler, server_side_detection=True).resolve()
        assert outcome.table.number == 5
        assert outcome.confidence == Confidence.HIGH
