"""Conjunction events and the maneuver solutions attached to them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple


class Provenance(Enum):
    """Where a conjunction record came from."""

    LOCAL = "local"
    EXTERNAL = "external"


class BurnDirection(Enum):
    PROGRADE = "prograde"
    RETROGRADE = "retrograde"


class PlanStatus(Enum):
    """Outcome of planning one event."""

    PLANNED = "planned"
    NOT_REQUIRED = "not_required"
    NO_SOLUTION = "no_solution"
    FAILED = "failed"


class EventKey(NamedTuple):
    """Identity of a conjunction: re-detection of the same key is an update."""

    primary_norad_id: int
    secondary_norad_id: int
    tca: datetime


def as_utc(t: datetime) -> datetime:
    """Return ``t`` as an aware UTC datetime (naive input is taken as UTC)."""
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


@dataclass(frozen=True)
class ManeuverSolution:
    """Minimal along-track burn restoring the safe miss distance.

    Attributes:
        delta_v_mps: Burn magnitude in m/s (0 when no maneuver is needed).
        direction: Along-track sense of the burn.
        burn_time: When the burn is executed.
        resulting_apogee_km: Apogee altitude of the post-burn orbit.
        resulting_perigee_km: Perigee altitude of the post-burn orbit.
        resulting_separation_km: Predicted separation at TCA after the burn.
    """

    delta_v_mps: float
    direction: BurnDirection
    burn_time: datetime
    resulting_apogee_km: float
    resulting_perigee_km: float
    resulting_separation_km: float

    @property
    def requires_maneuver(self) -> bool:
        return self.delta_v_mps > 0.0


@dataclass
class ConjunctionEvent:
    """A predicted close approach between a primary and a secondary object.

    Attributes:
        primary_norad_id: NORAD ID of the primary (protected) object.
        secondary_norad_id: NORAD ID of the secondary object.
        tca: Time of closest approach (UTC).
        miss_distance_km: Predicted miss distance in km.
        relative_speed_km_s: Relative speed at TCA in km/s.
        primary_name: Display name of the primary.
        secondary_name: Display name of the secondary.
        probability: Collision probability from an external feed, if any.
        provenance: Locally screened or externally supplied.
        solution: Attached maneuver solution, if one was found.
        maneuver_status: Outcome of the last planning run, None if never planned.
        created_at: When the record was first stored.
        event_id: Catalog row id once stored.
    """

    primary_norad_id: int
    secondary_norad_id: int
    tca: datetime
    miss_distance_km: float
    relative_speed_km_s: float
    primary_name: str = ""
    secondary_name: str = ""
    probability: float | None = None
    provenance: Provenance = Provenance.LOCAL
    solution: ManeuverSolution | None = None
    maneuver_status: PlanStatus | None = None
    created_at: datetime | None = None
    event_id: int | None = None

    def __post_init__(self) -> None:
        if not self.miss_distance_km >= 0:
            raise ValueError(f"miss distance must be >= 0, got {self.miss_distance_km}")
        if not self.relative_speed_km_s >= 0:
            raise ValueError(f"relative speed must be >= 0, got {self.relative_speed_km_s}")
        if self.probability is not None and not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must lie in [0, 1], got {self.probability}")
        self.tca = as_utc(self.tca)

    @property
    def key(self) -> EventKey:
        return EventKey(self.primary_norad_id, self.secondary_norad_id, self.tca)

    def involves(self, norad_id: int) -> bool:
        return norad_id in (self.primary_norad_id, self.secondary_norad_id)
