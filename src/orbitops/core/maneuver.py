"""Collision-avoidance maneuver planning.

A single impulsive burn is applied along the primary's velocity direction
some minutes before TCA. To first order the burn shifts the primary's
position at TCA by ``Δv · (TCA − t_burn) · ŝ``, where ŝ is the burn axis.
The axis is the velocity direction at burn time, flipped when that
direction points towards the secondary, so the separation
``|r_p − r_s + Δv·Δt·ŝ|`` grows monotonically with Δv. The smallest Δv
reaching the safe miss distance is then found by doubling and bisection.

The model is only meaningful for small burns shortly before TCA; the
configured cap bounds it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np
from numpy.typing import NDArray

from orbitops.core.elements import OrbitalElements, elements_from_state
from orbitops.core.events import BurnDirection, ConjunctionEvent, ManeuverSolution
from orbitops.core.objects import TrackedObject
from orbitops.core.propagation import OrbitStateProvider, Sgp4StateProvider
from orbitops.errors import PropagationUnavailable
from orbitops.utils.constants import (
    DEFAULT_BISECTION_ITERATIONS,
    DEFAULT_BURN_LEAD_TIME_MIN,
    DEFAULT_DELTA_V_SEED_MPS,
    DEFAULT_SAFE_MISS_DISTANCE_KM,
    DEFAULT_SEPARATION_TOLERANCE_KM,
    MAX_BURN_LEAD_TIME_MIN,
    MAX_DELTA_V_MPS,
    ZERO_DELTA_V_MPS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManeuverConfig:
    """Maneuver planning parameters.

    Attributes:
        safe_miss_distance_km: Separation at TCA the burn must restore.
        burn_lead_time_minutes: Burn time relative to TCA; must be negative.
        delta_v_seed_mps: First upper bracket of the search.
        max_delta_v_mps: Search cap; no solution is reported beyond it.
        bisection_iterations: Fixed bisection budget after bracketing.
        separation_tolerance_km: Early exit once this close to the target.
        zero_delta_v_mps: Burns at or below this count as "no maneuver needed".
    """

    safe_miss_distance_km: float = DEFAULT_SAFE_MISS_DISTANCE_KM
    burn_lead_time_minutes: float = DEFAULT_BURN_LEAD_TIME_MIN
    delta_v_seed_mps: float = DEFAULT_DELTA_V_SEED_MPS
    max_delta_v_mps: float = MAX_DELTA_V_MPS
    bisection_iterations: int = DEFAULT_BISECTION_ITERATIONS
    separation_tolerance_km: float = DEFAULT_SEPARATION_TOLERANCE_KM
    zero_delta_v_mps: float = ZERO_DELTA_V_MPS

    def __post_init__(self) -> None:
        if not -MAX_BURN_LEAD_TIME_MIN <= self.burn_lead_time_minutes < 0:
            raise ValueError(
                f"burn_lead_time_minutes must lie in [-{MAX_BURN_LEAD_TIME_MIN:g}, 0), "
                f"got {self.burn_lead_time_minutes}"
            )
        if self.safe_miss_distance_km <= 0:
            raise ValueError(f"safe_miss_distance_km must be > 0, got {self.safe_miss_distance_km}")
        if self.delta_v_seed_mps <= 0 or self.max_delta_v_mps < self.delta_v_seed_mps:
            raise ValueError(
                f"need 0 < delta_v_seed_mps <= max_delta_v_mps, got "
                f"{self.delta_v_seed_mps} and {self.max_delta_v_mps}"
            )
        if self.bisection_iterations < 1:
            raise ValueError(f"bisection_iterations must be >= 1, got {self.bisection_iterations}")


@dataclass(frozen=True)
class BurnGeometry:
    """States entering the linear separation model.

    Attributes:
        burn_time: Time of the impulsive burn.
        tca: Time of closest approach.
        burn_position_km: Primary position at burn time.
        burn_velocity_km_s: Primary velocity at burn time.
        primary_position_km: Unperturbed primary position at TCA.
        secondary_position_km: Secondary position at TCA.
    """

    burn_time: datetime
    tca: datetime
    burn_position_km: NDArray[np.float64]
    burn_velocity_km_s: NDArray[np.float64]
    primary_position_km: NDArray[np.float64]
    secondary_position_km: NDArray[np.float64]

    @classmethod
    def from_provider(
        cls,
        provider: OrbitStateProvider,
        primary: TrackedObject,
        secondary: TrackedObject,
        tca: datetime,
        burn_lead_time_minutes: float,
    ) -> BurnGeometry:
        """Evaluate both objects at burn time and TCA.

        Raises:
            PropagationUnavailable: If any of the three states is unavailable.
        """
        burn_time = tca + timedelta(minutes=burn_lead_time_minutes)
        at_burn = provider.state_at(primary, burn_time)
        primary_at_tca = provider.state_at(primary, tca)
        secondary_at_tca = provider.state_at(secondary, tca)
        return cls(
            burn_time=burn_time,
            tca=tca,
            burn_position_km=at_burn.position_km,
            burn_velocity_km_s=at_burn.velocity_km_s,
            primary_position_km=primary_at_tca.position_km,
            secondary_position_km=secondary_at_tca.position_km,
        )

    @property
    def lead_seconds(self) -> float:
        return (self.tca - self.burn_time).total_seconds()

    @property
    def direction(self) -> BurnDirection:
        miss = self.primary_position_km - self.secondary_position_km
        if float(np.dot(miss, self.burn_velocity_km_s)) >= 0.0:
            return BurnDirection.PROGRADE
        return BurnDirection.RETROGRADE

    @property
    def thrust_axis(self) -> NDArray[np.float64]:
        speed = float(np.linalg.norm(self.burn_velocity_km_s))
        if speed == 0.0:
            raise PropagationUnavailable(None, "primary velocity at burn time is zero")
        sign = 1.0 if self.direction is BurnDirection.PROGRADE else -1.0
        return sign * self.burn_velocity_km_s / speed

    def separation_km(self, delta_v_mps: float) -> float:
        """Separation at TCA after a burn of ``delta_v_mps`` along the thrust axis."""
        displacement = (delta_v_mps / 1000.0) * self.lead_seconds * self.thrust_axis
        return float(np.linalg.norm(self.primary_position_km + displacement - self.secondary_position_km))

    def post_burn_elements(self, delta_v_mps: float) -> OrbitalElements:
        velocity = self.burn_velocity_km_s + (delta_v_mps / 1000.0) * self.thrust_axis
        return elements_from_state(self.burn_position_km, velocity)


def search_delta_v(geometry: BurnGeometry, config: ManeuverConfig) -> float | None:
    """Smallest burn (m/s) whose separation reaches the safe distance.

    Returns 0.0 when the unperturbed separation already suffices and None
    when even the capped burn falls short.
    """
    target = config.safe_miss_distance_km
    if geometry.separation_km(0.0) >= target:
        return 0.0

    lo, hi = 0.0, config.delta_v_seed_mps
    while geometry.separation_km(hi) < target:
        if hi >= config.max_delta_v_mps:
            return None
        lo, hi = hi, min(hi * 2.0, config.max_delta_v_mps)

    mid = (lo + hi) / 2.0
    for _ in range(config.bisection_iterations):
        mid = (lo + hi) / 2.0
        separation = geometry.separation_km(mid)
        if abs(separation - target) <= config.separation_tolerance_km:
            break
        if separation < target:
            lo = mid
        else:
            hi = mid
    return mid


def plan(
    event: ConjunctionEvent,
    primary: TrackedObject,
    secondary: TrackedObject,
    config: ManeuverConfig | None = None,
    provider: OrbitStateProvider | None = None,
) -> ManeuverSolution | None:
    """Find the minimal along-track burn restoring a safe miss distance.

    Args:
        event: Conjunction to mitigate; its primary is the maneuvering object.
        primary: The primary's tracked object.
        secondary: The secondary's tracked object.
        config: Planning parameters.
        provider: State provider. Defaults to SGP4.

    Returns:
        The solution (zero-magnitude if no burn is needed), or None if no
        burn up to the cap reaches the safe distance.

    Raises:
        PropagationUnavailable: If either object cannot be evaluated at
            burn time or TCA.
        ValueError: If the objects do not match the event.
    """
    config = config or ManeuverConfig()
    provider = provider or Sgp4StateProvider()
    if (primary.norad_id, secondary.norad_id) != (event.primary_norad_id, event.secondary_norad_id):
        raise ValueError(
            f"objects {primary.norad_id}/{secondary.norad_id} do not match event "
            f"{event.primary_norad_id}/{event.secondary_norad_id}"
        )

    geometry = BurnGeometry.from_provider(provider, primary, secondary, event.tca, config.burn_lead_time_minutes)
    delta_v = search_delta_v(geometry, config)

    if delta_v is None:
        logger.info(
            "NORAD %d/%d: no burn up to %.2f m/s reaches %.1f km",
            event.primary_norad_id, event.secondary_norad_id, config.max_delta_v_mps, config.safe_miss_distance_km,
        )
        return None

    if delta_v <= config.zero_delta_v_mps:
        delta_v = 0.0

    elements = geometry.post_burn_elements(delta_v)
    solution = ManeuverSolution(
        delta_v_mps=delta_v,
        direction=geometry.direction,
        burn_time=geometry.burn_time,
        resulting_apogee_km=elements.apogee_altitude_km,
        resulting_perigee_km=elements.perigee_altitude_km,
        resulting_separation_km=geometry.separation_km(delta_v),
    )
    if solution.requires_maneuver:
        logger.info(
            "NORAD %d/%d: %s burn of %.3f m/s at %s -> orbit %.1f x %.1f km",
            event.primary_norad_id, event.secondary_norad_id, solution.direction.value, delta_v,
            solution.burn_time.isoformat(), solution.resulting_perigee_km, solution.resulting_apogee_km,
        )
    else:
        logger.info("NORAD %d/%d: separation already safe, no maneuver needed",
                    event.primary_norad_id, event.secondary_norad_id)
    return solution
