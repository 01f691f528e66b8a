"""Tests for state-vector to orbital-element conversion."""
from __future__ import annotations

import math

import numpy as np
import pytest

from orbitops.core.elements import elements_from_state
from orbitops.errors import InvalidStateVector
from orbitops.utils.constants import EARTH_MU_KM3_S2 as MU, EARTH_RADIUS_KM


def test_circular_orbit():
    r = 7000.0
    v = math.sqrt(MU / r)
    el = elements_from_state([r, 0.0, 0.0], [0.0, v, 0.0])
    assert el.semi_major_axis_km == pytest.approx(r, rel=1e-12)
    assert el.eccentricity == pytest.approx(0.0, abs=1e-12)
    assert el.apogee_radius_km == pytest.approx(r)
    assert el.perigee_radius_km == pytest.approx(r)
    assert el.inclination_deg == pytest.approx(0.0)
    assert el.apogee_altitude_km == pytest.approx(r - EARTH_RADIUS_KM)


def test_elliptical_orbit_at_perigee():
    rp, ra = 6800.0, 7600.0
    a = (rp + ra) / 2.0
    vp = math.sqrt(MU * (2.0 / rp - 1.0 / a))
    el = elements_from_state([rp, 0.0, 0.0], [0.0, vp, 0.0])
    assert el.semi_major_axis_km == pytest.approx(a, rel=1e-9)
    assert el.eccentricity == pytest.approx((ra - rp) / (ra + rp), rel=1e-9)
    assert el.perigee_radius_km == pytest.approx(rp, rel=1e-9)
    assert el.apogee_radius_km == pytest.approx(ra, rel=1e-9)


def test_shape_invariant_along_orbit():
    """Propagating along the ellipse must not change a, e, apogee or perigee."""
    rp, ra = 6800.0, 7600.0
    a = (rp + ra) / 2.0
    e = (ra - rp) / (ra + rp)
    p = a * (1 - e * e)
    for nu in (0.3, 1.7, math.pi, 4.0):
        r = p / (1 + e * math.cos(nu))
        pos = [r * math.cos(nu), r * math.sin(nu), 0.0]
        vel = [-math.sqrt(MU / p) * math.sin(nu), math.sqrt(MU / p) * (e + math.cos(nu)), 0.0]
        el = elements_from_state(pos, vel)
        assert el.apogee_radius_km == pytest.approx(ra, rel=1e-9)
        assert el.perigee_radius_km == pytest.approx(rp, rel=1e-9)


def test_inclination_polar():
    r = 7000.0
    v = math.sqrt(MU / r)
    el = elements_from_state([r, 0.0, 0.0], [0.0, 0.0, v])
    assert el.inclination_deg == pytest.approx(90.0)


def test_accepts_numpy_arrays():
    el = elements_from_state(np.array([7000.0, 0, 0]), np.array([0, 7.546, 0]))
    assert el.eccentricity < 0.01


@pytest.mark.parametrize(
    "position, velocity",
    [
        ([0.0, 0.0, 0.0], [0.0, 7.5, 0.0]),
        ([7000.0, 0.0, float("nan")], [0.0, 7.5, 0.0]),
        ([7000.0, 0.0], [0.0, 7.5, 0.0]),
        ([7000.0, 0.0, 0.0], [0.0, 20.0, 0.0]),  # hyperbolic
        ([7000.0, 0.0, 0.0], [0.0, 1.001 * math.sqrt(2 * MU / 7000.0), 0.0]),  # just above escape
    ],
)
def test_degenerate_states_rejected(position, velocity):
    with pytest.raises(InvalidStateVector):
        elements_from_state(position, velocity)


def test_invalid_state_is_value_error():
    with pytest.raises(ValueError):
        elements_from_state([0.0, 0.0, 0.0], [0.0, 0.0, 0.0])
