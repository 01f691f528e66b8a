from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from orbitops.core.events import ConjunctionEvent, as_utc
from orbitops.utils.constants import (
    DEFAULT_PC_THRESHOLD,
    DEFAULT_PLANNING_HORIZON_HOURS,
    DEFAULT_SAFETY_FLOOR_KM,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskCriteria:
    safety_floor_km: float = DEFAULT_SAFETY_FLOOR_KM
    probability_threshold: float = DEFAULT_PC_THRESHOLD
    planning_horizon_hours: float = DEFAULT_PLANNING_HORIZON_HOURS


@dataclass(frozen=True)
class RiskFlags:
    high_risk: bool
    urgent: bool
    time_to_tca_hours: float

    @property
    def actionable(self) -> bool:
        """Eligible for maneuver planning."""
        return self.high_risk and self.urgent


def is_high_risk(event: ConjunctionEvent, criteria: RiskCriteria) -> bool:
    """
    Miss distance below the safety floor, and either no probability is
    known or it is at/above the threshold.
    """
    if event.miss_distance_km >= criteria.safety_floor_km:
        return False
    return event.probability is None or event.probability >= criteria.probability_threshold


def is_urgent(event: ConjunctionEvent, criteria: RiskCriteria, now: datetime | None = None) -> bool:
    """TCA strictly in the future and no further out than the planning horizon."""
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    lead = event.tca - now
    return timedelta(0) < lead <= timedelta(hours=criteria.planning_horizon_hours)


def is_actionable(event: ConjunctionEvent, criteria: RiskCriteria, now: datetime | None = None) -> bool:
    return is_high_risk(event, criteria) and is_urgent(event, criteria, now)


def classify(event: ConjunctionEvent, criteria: RiskCriteria, now: datetime | None = None) -> RiskFlags:
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    flags = RiskFlags(
        high_risk=is_high_risk(event, criteria),
        urgent=is_urgent(event, criteria, now),
        time_to_tca_hours=(event.tca - now).total_seconds() / 3600.0,
    )
    logger.debug(
        "Risk NORAD %d/%d: high_risk=%s urgent=%s (%.1f h to TCA)",
        event.primary_norad_id, event.secondary_norad_id, flags.high_risk, flags.urgent, flags.time_to_tca_hours,
    )
    return flags
