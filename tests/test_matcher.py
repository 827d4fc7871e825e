"""Tests for distance-based table matching."""

import pytest

from table_checkin.exceptions import NoNearbyTable
from table_checkin.schemas import Confidence, ResolutionMethod
from table_checkin.services.resolution.base import DisambiguationSet, ResolutionCandidate
from table_checkin.services.resolution.matcher import TableMatcher

from tests.conftest import coord_at, make_table


@pytest.fixture
def matcher() -> TableMatcher:
    return TableMatcher(epsilon_m=0.05, fallback_radius_m=20.0)


class TestHighConfidence:
    """A single table inside its own radius."""

    def test_exact_position_on_one_table(self, matcher, row_tables):
        outcome = matcher.match(coord_at(15.0), row_tables)

        assert isinstance(outcome, ResolutionCandidate)
        assert outcome.confidence == Confidence.HIGH
        assert outcome.method == ResolutionMethod.GEO
        assert outcome.table.number == 5
        assert outcome.distance_m == pytest.approx(0.0, abs=1e-6)

    def test_neighbour_outside_epsilon_does_not_block(self, matcher):
        tables = [make_table(1, 0.0), make_table(2, 1.5)]
        outcome = matcher.match(coord_at(0.2), tables)

        assert isinstance(outcome, ResolutionCandidate)
        assert outcome.table.number == 1
        assert outcome.confidence == Confidence.HIGH


class TestAmbiguity:
    """Tables GPS cannot tell apart."""

    def test_distances_within_epsilon_are_ambiguous(self, matcher):
        tables = [make_table(3, 10.0), make_table(4, 10.03)]
        outcome = matcher.match(coord_at(5.0), tables)

        assert isinstance(outcome, DisambiguationSet)
        assert outcome.gps_ambiguous is True
        assert outcome.table_ids == ["table-3", "table-4"]

    def test_identical_points_never_auto_select(self, matcher):
        tables = [make_table(3, 10.0), make_table(4, 10.0)]
        outcome = matcher.match(coord_at(10.0), tables)

        assert isinstance(outcome, DisambiguationSet)
        assert outcome.gps_ambiguous is True
        assert sorted(o.table.number for o in outcome.options) == [3, 4]

    def test_two_tables_in_radius_return_full_ranked_list(self, matcher):
        tables = [make_table(1, 0.0, radius_m=2.0), make_table(2, 1.0, radius_m=2.0), make_table(9, 12.0)]
        outcome = matcher.match(coord_at(0.3), tables)

        assert isinstance(outcome, DisambiguationSet)
        assert outcome.gps_ambiguous is False
        assert [o.table.number for o in outcome.options] == [1, 2, 9]
        distances = [o.distance_m for o in outcome.options]
        assert distances == sorted(distances)

    def test_lone_in_radius_table_that_is_not_nearest(self, matcher):
        tables = [make_table(1, 0.0, radius_m=0.1), make_table(2, 1.0, radius_m=5.0)]
        outcome = matcher.match(coord_at(0.4), tables)

        assert isinstance(outcome, DisambiguationSet)
        assert outcome.table_ids == ["table-1", "table-2"]


class TestLowConfidence:
    """Nearest table within the fallback radius but outside its own."""

    def test_low_candidate_carries_ranked_list(self, matcher):
        tables = [make_table(1, 5.0), make_table(2, 11.0)]
        outcome = matcher.match(coord_at(0.0), tables)

        assert isinstance(outcome, ResolutionCandidate)
        assert outcome.confidence == Confidence.LOW
        assert outcome.table.number == 1
        assert [o.table.number for o in outcome.ranked] == [1, 2]


class TestNoNearbyTable:
    """Nothing within the fallback radius."""

    def test_raises_when_everything_is_far(self, matcher):
        with pytest.raises(NoNearbyTable):
            matcher.match(coord_at(0.0), [make_table(1, 25.0), make_table(2, 40.0)])

    def test_raises_for_empty_list(self, matcher):
        with pytest.raises(NoNearbyTable):
            matcher.match(coord_at(0.0), [])

    def test_tables_without_location_are_ignored(self, matcher):
        with pytest.raises(NoNearbyTable):
            matcher.match(coord_at(0.0), [make_table(1, None)])


class TestConfiguration:
    """Radius defaults and accuracy widening."""

    def test_default_radius_is_three_feet(self):
        matcher = TableMatcher()
        table = make_table(1, 0.0, radius_m=None)
        assert matcher.effective_radius(table, coord_at(0.0)) == pytest.approx(0.9144)

    def test_accuracy_ignored_by_default(self):
        matcher = TableMatcher()
        outcome = matcher.match(coord_at(0.0, accuracy_m=8.0), [make_table(1, 5.0)])
        assert outcome.confidence == Confidence.LOW

    def test_accuracy_widens_radius_when_enabled(self):
        matcher = TableMatcher(widen_by_accuracy=True)
        outcome = matcher.match(coord_at(0.0, accuracy_m=8.0), [make_table(1, 5.0)])
        assert outcome.confidence == Confidence.HIGH

    def test_custom_fallback_radius(self):
        matcher = TableMatcher(fallback_radius_m=50.0)
        outcome = matcher.match(coord_at(0.0), [make_table(1, 30.0)])
        assert outcome.confidence == Confidence.LOW
