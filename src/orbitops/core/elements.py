"""Two-body orbital element recovery from a state vector."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from orbitops.errors import InvalidStateVector
from orbitops.utils.constants import EARTH_MU_KM3_S2, EARTH_RADIUS_KM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrbitalElements:
    """Shape of the osculating two-body orbit.

    Attributes:
        semi_major_axis_km: Semi-major axis in km.
        eccentricity: Magnitude of the eccentricity vector.
        apogee_radius_km: Apoapsis distance from Earth's centre in km.
        perigee_radius_km: Periapsis distance from Earth's centre in km.
        inclination_deg: Inclination of the angular momentum vector in degrees.
    """

    semi_major_axis_km: float
    eccentricity: float
    apogee_radius_km: float
    perigee_radius_km: float
    inclination_deg: float

    @property
    def apogee_altitude_km(self) -> float:
        return self.apogee_radius_km - EARTH_RADIUS_KM

    @property
    def perigee_altitude_km(self) -> float:
        return self.perigee_radius_km - EARTH_RADIUS_KM


def elements_from_state(
    position_km: ArrayLike,
    velocity_km_s: ArrayLike,
    mu: float = EARTH_MU_KM3_S2,
) -> OrbitalElements:
    """Convert an inertial state vector to Keplerian orbit shape.

    Standard two-body relations: h = r × v, e = ((v² − μ/r)·r − (r·v)·v)/μ,
    ε = v²/2 − μ/r, a = −μ/(2ε), apogee = a(1+e), perigee = a(1−e).

    Args:
        position_km: Position vector in km.
        velocity_km_s: Velocity vector in km/s.
        mu: Gravitational parameter in km³/s².

    Returns:
        The orbital elements.

    Raises:
        InvalidStateVector: Zero or non-finite input, or a state that is
            not on a closed orbit.
    """
    r = np.asarray(position_km, dtype=np.float64)
    v = np.asarray(velocity_km_s, dtype=np.float64)

    if r.shape != (3,) or v.shape != (3,):
        raise InvalidStateVector(f"Expected 3-vectors, got shapes {r.shape} and {v.shape}")
    if not (np.all(np.isfinite(r)) and np.all(np.isfinite(v))):
        raise InvalidStateVector("State vector contains non-finite components")

    r_mag = float(np.linalg.norm(r))
    if r_mag == 0.0:
        raise InvalidStateVector("Position vector is zero")

    v_sq = float(np.dot(v, v))
    h = np.cross(r, v)
    e_vec = ((v_sq - mu / r_mag) * r - float(np.dot(r, v)) * v) / mu
    ecc = float(np.linalg.norm(e_vec))

    energy = v_sq / 2.0 - mu / r_mag
    if energy >= 0.0:
        raise InvalidStateVector(f"State is not on a closed orbit (specific energy {energy:.3f} km²/s²)")

    a = -mu / (2.0 * energy)

    h_mag = float(np.linalg.norm(h))
    inclination = math.degrees(math.acos(max(-1.0, min(1.0, h[2] / h_mag)))) if h_mag > 0 else 0.0

    return OrbitalElements(
        semi_major_axis_km=a,
        eccentricity=ecc,
        apogee_radius_km=a * (1.0 + ecc),
        perigee_radius_km=a * (1.0 - ecc),
        inclination_deg=inclination,
    )
