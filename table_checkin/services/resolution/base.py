"""
Resolution Result Types and Resolver Base Class

Every resolver turns one raw signal into either a single
``ResolutionCandidate`` or a ``DisambiguationSet`` for the customer to
choose from, or raises a typed ``ResolutionError``.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from table_checkin.schemas import Confidence, ResolutionMethod, Table
from table_checkin.services.backend.base import TableOption


@dataclass(frozen=True)
class ResolutionCandidate:
    """
    A single table proposed by a resolver.

    Attributes:
        table: Proposed table
        distance_m: Distance from the sampled position (0 for QR/manual)
        method: Signal that produced it
        confidence: HIGH auto-confirms, LOW needs the customer to confirm
        ranked: Nearby options the candidate was chosen from (LOW geo only)
    """
    table: Table
    distance_m: float
    method: ResolutionMethod
    confidence: Confidence
    ranked: tuple[TableOption, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "table": self.table.to_wire(),
            "distance": self.distance_m,
            "method": self.method.value,
            "confidence": self.confidence.value,
            "ranked": [option.to_dict() for option in self.ranked],
        }


@dataclass(frozen=True)
class DisambiguationSet:
    """
    Ranked tables for a human to choose from.

    ``gps_ambiguous`` means the two nearest tables are closer together than
    GPS can resolve, so sampling again will not help.
    """
    options: tuple[TableOption, ...]
    gps_ambiguous: bool
    method: ResolutionMethod = ResolutionMethod.GEO
    message: Optional[str] = None

    @property
    def table_ids(self) -> list[str]:
        return [option.table.id for option in self.options]

    def find(self, table_id: str) -> Optional[TableOption]:
        for option in self.options:
            if option.table.id == table_id:
                return option
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tables": [option.to_dict() for option in self.options],
            "gpsAmbiguous": self.gps_ambiguous,
            "method": self.method.value,
            "message": self.message,
        }


ResolutionOutcome = Union[ResolutionCandidate, DisambiguationSet]


class BaseResolver(ABC):
    """Abstract base class for signal resolvers."""

    method: ResolutionMethod

    @abstractmethod
    async def resolve(self, signal) -> ResolutionOutcome:
        """
        Resolve a raw signal to a table.

        Raises:
            ResolutionError: Typed, recoverable failure
            NetworkError: Backend unreachable
        """
        pass
