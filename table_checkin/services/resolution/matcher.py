"""
Table Matcher

Turns a sampled coordinate plus candidate tables into a single match or a
ranked list for the customer to choose from.

Rules:
    1. Rank tables with a location by distance, keep those within the
       fallback radius. None left -> NoNearbyTable.
    2. gps_ambiguous when the two nearest differ by less than epsilon.
    3. gps_ambiguous, or two or more tables inside their own radius
       -> DisambiguationSet with the full ranked list.
    4. Exactly one table (the nearest) inside its radius -> HIGH.
    5. Otherwise the nearest within the fallback radius -> LOW, carrying
       the ranked list.

Author: Your Name
Version: 1.0.0
"""

import logging
from typing import Iterable, Union

from table_checkin.exceptions import NoNearbyTable
from table_checkin.geometry import distance_between
from table_checkin.schemas import Confidence, Coordinate, ResolutionMethod, Table
from table_checkin.services.backend.base import TableOption
from table_checkin.services.resolution.base import DisambiguationSet, ResolutionCandidate

logger = logging.getLogger(__name__)


class TableMatcher:
    """
    Distance-based table matching.

    Attributes:
        epsilon_m: Distance gap below which two tables are indistinguishable
        fallback_radius_m: Widest radius offered as a low-confidence match
        default_radius_m: Detection radius for tables without one (3 ft)
        widen_by_accuracy: Use max(table radius, GPS accuracy)

    Example:
        >>> matcher = TableMatcher()
        >>> outcome = matcher.match(coord, tables)
    """

    def __init__(
        self,
        epsilon_m: float = 0.05,
        fallback_radius_m: float = 20.0,
        default_radius_m: float = 0.9144,
        widen_by_accuracy: bool = False,
    ):
        self.epsilon_m = epsilon_m
        self.fallback_radius_m = fallback_radius_m
        self.default_radius_m = default_radius_m
        self.widen_by_accuracy = widen_by_accuracy

    def rank(self, coord: Coordinate, tables: Iterable[Table]) -> list[TableOption]:
        """Tables with a location within the fallback radius, nearest first."""
        options = [
            TableOption(table=table, distance_m=distance_between(coord, table.location))
            for table in tables
            if table.location is not None
        ]
        options = [o for o in options if o.distance_m <= self.fallback_radius_m]
        options.sort(key=lambda o: o.distance_m)
        return options

    def effective_radius(self, table: Table, coord: Coordinate) -> float:
        radius = table.detection_radius_m or self.default_radius_m
        if self.widen_by_accuracy and coord.accuracy_m is not None:
            return max(radius, coord.accuracy_m)
        return radius

    def is_gps_ambiguous(self, ranked: list[TableOption]) -> bool:
        return len(ranked) >= 2 and abs(ranked[1].distance_m - ranked[0].distance_m) < self.epsilon_m

    def match(
        self,
        coord: Coordinate,
        tables: Iterable[Table],
    ) -> Union[ResolutionCandidate, DisambiguationSet]:
        """
        Match a coordinate to a table.

        Raises:
            NoNearbyTable: No table within the fallback radius
        """
        return self.match_ranked(coord, self.rank(coord, tables))

    def match_ranked(
        self,
        coord: Coordinate,
        ranked: list[TableOption],
    ) -> Union[ResolutionCandidate, DisambiguationSet]:
        """Apply the matching rules to an already ranked option list."""
        ranked = [o for o in ranked if o.distance_m <= self.fallback_radius_m]
        if not ranked:
            logger.info(f"No tables within {self.fallback_radius_m}m")
            raise NoNearbyTable()

        gps_ambiguous = self.is_gps_ambiguous(ranked)
        in_radius = [
            o for o in ranked
            if o.distance_m <= self.effective_radius(o.table, coord)
        ]

        # A lone in-radius table that is not the nearest is also ambiguous
        lone_but_not_nearest = len(in_radius) == 1 and in_radius[0] is not ranked[0]

        if gps_ambiguous or len(in_radius) >= 2 or lone_but_not_nearest:
            logger.info(
                f"Ambiguous match: {len(ranked)} candidates "
                f"(gps_ambiguous={gps_ambiguous}, in_radius={len(in_radius)})"
            )
            return DisambiguationSet(
                options=tuple(ranked),
                gps_ambiguous=gps_ambiguous,
                method=ResolutionMethod.GEO,
            )

        closest = ranked[0]
        if in_radius:
            logger.info(f"Table {closest.table.number} matched at {closest.distance_m:.2f}m (high)")
            return ResolutionCandidate(
                table=closest.table,
                distance_m=closest.distance_m,
                method=ResolutionMethod.GEO,
                confidence=Confidence.HIGH,
            )

        logger.info(f"Table {closest.table.number} nearest at {closest.distance_m:.2f}m (low)")
        return ResolutionCandidate(
            table=closest.table,
            distance_m=closest.distance_m,
            method=ResolutionMethod.GEO,
            confidence=Confidence.LOW,
            ranked=tuple(ranked),
        )
