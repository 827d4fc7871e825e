"""
Table Resolution

Resolvers (QR, GPS, manual), the distance matcher and the arbiter that
decides between auto-confirmation and customer selection.

Usage:
    from table_checkin.services.resolution import QrResolver, ResolutionArbiter

    candidate = await QrResolver(backend).resolve(scanned_text)
    decision = await ResolutionArbiter().arbitrate(candidate)
    table = decision.require_table()
"""

from table_checkin.services.resolution.arbiter import (
    ArbitrationDecision,
    DecisionType,
    ResolutionArbiter,
)
from table_checkin.services.resolution.base import (
    BaseResolver,
    DisambiguationSet,
    ResolutionCandidate,
    ResolutionOutcome,
)
from table_checkin.services.resolution.matcher import TableMatcher
from table_checkin.services.resolution.resolvers import (
    GeoResolver,
    ManualResolver,
    QrPayload,
    QrResolver,
    parse_qr_payload,
)

__all__ = [
    "ArbitrationDecision",
    "DecisionType",
    "ResolutionArbiter",
    "BaseResolver",
    "DisambiguationSet",
    "ResolutionCandidate",
    "ResolutionOutcome",
    "TableMatcher",
    "GeoResolver",
    "ManualResolver",
    "QrPayload",
    "QrResolver",
    "parse_qr_payload",
]
