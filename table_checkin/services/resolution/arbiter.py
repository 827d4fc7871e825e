"""
Resolution Arbiter

Decides whether a resolver outcome can be confirmed automatically or must
be shown to the customer for selection.

    HIGH candidate                -> confirmed (after a short display delay)
    LOW candidate / any set       -> needs_selection with the ranked list
    gps_ambiguous set             -> needs_selection, retry_pointless,
                                     suggest scanning the QR code

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional

from table_checkin.exceptions import Ambiguous
from table_checkin.schemas import Confidence, ResolutionMethod, Table
from table_checkin.services.backend.base import TableOption
from table_checkin.services.resolution.base import (
    DisambiguationSet,
    ResolutionCandidate,
    ResolutionOutcome,
)

logger = logging.getLogger(__name__)

GPS_AMBIGUOUS_GUIDANCE = (
    "These tables are too close together for GPS to tell apart. "
    "Scan the QR code on your table or pick it from the list."
)
SELECTION_GUIDANCE = "Please confirm your table from the list."


class DecisionType(str, Enum):
    CONFIRMED = "confirmed"
    NEEDS_SELECTION = "needs_selection"


@dataclass(frozen=True)
class ArbitrationDecision:
    """
    Outcome of arbitration.

    Attributes:
        type: confirmed or needs_selection
        table: Confirmed table (confirmed only)
        candidate: The candidate that was confirmed, if any
        selection: Ranked set to choose from (needs_selection only)
        retry_pointless: Sampling GPS again will not separate the tables
        suggested_method: Better signal to try, if any
        guidance: Text for the customer
    """
    type: DecisionType
    method: ResolutionMethod
    table: Optional[Table] = None
    candidate: Optional[ResolutionCandidate] = None
    selection: Optional[DisambiguationSet] = None
    retry_pointless: bool = False
    suggested_method: Optional[ResolutionMethod] = None
    guidance: Optional[str] = None

    @property
    def is_confirmed(self) -> bool:
        return self.type == DecisionType.CONFIRMED

    @property
    def distance_m(self) -> Optional[float]:
        return self.candidate.distance_m if self.candidate else None

    def require_table(self) -> Table:
        """
        Raises:
            Ambiguous: Decision still needs a human choice
        """
        if not self.is_confirmed or self.table is None:
            raise Ambiguous(self.guidance)
        return self.table


class ResolutionArbiter:
    """
    Arbitrates resolver outcomes.

    Args:
        confirm_delay_seconds: Pause before auto-confirming so the customer
            sees which table was detected (0 disables)
        sleep: Injectable sleep coroutine
    """

    def __init__(
        self,
        confirm_delay_seconds: float = 1.5,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.confirm_delay_seconds = confirm_delay_seconds
        self._sleep = sleep or asyncio.sleep

    async def arbitrate(self, outcome: ResolutionOutcome) -> ArbitrationDecision:
        """Turn a resolver outcome into a decision."""
        if isinstance(outcome, DisambiguationSet):
            return self._needs_selection(outcome)

        if outcome.confidence == Confidence.HIGH:
            if self.confirm_delay_seconds > 0:
                await self._display_delay()
            logger.info(f"Table {outcome.table.number} confirmed ({outcome.method.value})")
            return ArbitrationDecision(
                type=DecisionType.CONFIRMED,
                method=outcome.method,
                table=outcome.table,
                candidate=outcome,
            )

        ranked = outcome.ranked or (TableOption(table=outcome.table, distance_m=outcome.distance_m),)
        selection = DisambiguationSet(
            options=tuple(ranked),
            gps_ambiguous=False,
            method=outcome.method,
        )
        return self._needs_selection(selection)

    async def _display_delay(self) -> None:
        """Sleep for the display delay. Cancellation takes effect only once it has elapsed."""
        delay = asyncio.ensure_future(self._sleep(self.confirm_delay_seconds))
        try:
            await asyncio.shield(delay)
        except asyncio.CancelledError:
            await delay
            raise

    def _needs_selection(self, selection: DisambiguationSet) -> ArbitrationDecision:
        logger.info(
            f"Selection required: {len(selection.options)} option(s), "
            f"gps_ambiguous={selection.gps_ambiguous}"
        )
        if selection.gps_ambiguous:
            return ArbitrationDecision(
                type=DecisionType.NEEDS_SELECTION,
                method=selection.method,
                selection=selection,
                retry_pointless=True,
                suggested_method=ResolutionMethod.QR,
                guidance=GPS_AMBIGUOUS_GUIDANCE,
            )
        return ArbitrationDecision(
            type=DecisionType.NEEDS_SELECTION,
            method=selection.method,
            selection=selection,
            guidance=selection.message or SELECTION_GUIDANCE,
        )

    def confirm_selection(self, decision: ArbitrationDecision, table_id: str) -> ArbitrationDecision:
        """
        Confirm the customer's pick from a needs_selection decision.

        Raises:
            Ambiguous: ``table_id`` is not one of the offered tables
        """
        if decision.is_confirmed:
            if decision.table is not None and decision.table.id == table_id:
                return decision
            raise Ambiguous(f"Table {table_id} was not offered")

        option = decision.selection.find(table_id) if decision.selection else None
        if option is None:
            raise Ambiguous(f"Table {table_id} was not offered")

        logger.info(f"Table {option.table.number} selected by customer")
        candidate = ResolutionCandidate(
            table=option.table,
            distance_m=option.distance_m,
            method=decision.method,
            confidence=Confidence.HIGH,
        )
        return replace(
            decision,
            type=DecisionType.CONFIRMED,
            table=option.table,
            candidate=candidate,
            guidance=None,
        )
