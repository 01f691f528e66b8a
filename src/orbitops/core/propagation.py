"""Orbit state evaluation.

The screener and the maneuver solver only ever ask "where is this object
at time t"; :class:`OrbitStateProvider` is that capability and
:class:`Sgp4StateProvider` answers it from TLEs.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import numpy as np
from numpy.typing import NDArray
from sgp4.api import jday

from orbitops.core.objects import TrackedObject
from orbitops.errors import PropagationUnavailable

logger = logging.getLogger(__name__)


@dataclass
class StateVector:
    """Position and velocity in an Earth-centred inertial frame (TEME for SGP4).

    Attributes:
        position_km: [x, y, z] position in km.
        velocity_km_s: [vx, vy, vz] velocity in km/s.
        epoch: Time of this state vector.
    """

    position_km: NDArray[np.float64]  # shape (3,)
    velocity_km_s: NDArray[np.float64]  # shape (3,)
    epoch: datetime


@dataclass
class Trajectory:
    """States of one object sampled at a sequence of times.

    Rows whose ``valid`` flag is False hold NaN.
    """

    times: list[datetime]
    positions_km: NDArray[np.float64]  # shape (n, 3)
    velocities_km_s: NDArray[np.float64]  # shape (n, 3)
    valid: NDArray[np.bool_]  # shape (n,)


def _julian(times: Sequence[datetime]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    jd = np.empty(len(times), dtype=np.float64)
    fr = np.empty(len(times), dtype=np.float64)
    for i, t in enumerate(times):
        jd[i], fr[i] = jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)
    return jd, fr


class OrbitStateProvider(ABC):
    """Evaluates an object's inertial state at a given time."""

    @abstractmethod
    def state_at(self, obj: TrackedObject, t: datetime) -> StateVector:
        """Return the state of ``obj`` at ``t``.

        Raises:
            PropagationUnavailable: If the state cannot be evaluated.
        """

    def states_at(self, obj: TrackedObject, times: Sequence[datetime]) -> Trajectory:
        """Sample ``obj`` at every time in ``times``.

        Failed samples are masked out rather than raised.
        """
        n = len(times)
        positions = np.full((n, 3), np.nan)
        velocities = np.full((n, 3), np.nan)
        valid = np.zeros(n, dtype=np.bool_)
        for i, t in enumerate(times):
            try:
                state = self.state_at(obj, t)
            except PropagationUnavailable:
                continue
            positions[i] = state.position_km
            velocities[i] = state.velocity_km_s
            valid[i] = True
        return Trajectory(list(times), positions, velocities, valid)


class Sgp4StateProvider(OrbitStateProvider):
    """SGP4 evaluation of an object's TLE."""

    def state_at(self, obj: TrackedObject, t: datetime) -> StateVector:
        if obj.tle is None:
            raise PropagationUnavailable(obj.norad_id, f"NORAD {obj.norad_id} has no element set")

        jd, fr = jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)
        error_code, pos, vel = obj.tle.satrec.sgp4(jd, fr)

        if error_code != 0:
            logger.debug("SGP4 failed for NORAD %d at %s: error code %d", obj.norad_id, t, error_code)
            raise PropagationUnavailable(
                obj.norad_id,
                f"SGP4 propagation failed for NORAD {obj.norad_id} at {t}: error code {error_code}",
            )

        return StateVector(
            position_km=np.array(pos, dtype=np.float64),
            velocity_km_s=np.array(vel, dtype=np.float64),
            epoch=t,
        )

    def states_at(self, obj: TrackedObject, times: Sequence[datetime]) -> Trajectory:
        """Vectorised SGP4 over all requested times (C-level loop)."""
        n = len(times)
        if obj.tle is None or n == 0:
            return Trajectory(
                list(times), np.full((n, 3), np.nan), np.full((n, 3), np.nan), np.zeros(n, dtype=np.bool_)
            )

        jd, fr = _julian(times)
        errors, positions, velocities = obj.tle.satrec.sgp4_array(jd, fr)

        valid = (errors == 0) & np.all(np.isfinite(positions), axis=1)
        positions = np.where(valid[:, None], positions, np.nan)
        velocities = np.where(valid[:, None], velocities, np.nan)

        if not np.all(valid):
            logger.debug("NORAD %d: %d/%d samples failed to propagate", obj.norad_id, n - int(valid.sum()), n)

        return Trajectory(list(times), positions, velocities, valid)
