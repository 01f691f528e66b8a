"""Tests for orbit state providers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from orbitops.core.objects import TrackedObject
from orbitops.core.propagation import OrbitStateProvider, Sgp4StateProvider, StateVector
from orbitops.errors import PropagationUnavailable
from tests.orbits import circular_object


def test_state_at_epoch_in_leo(iss: TrackedObject):
    provider = Sgp4StateProvider()
    state = provider.state_at(iss, iss.epoch)
    assert isinstance(state, StateVector)
    assert state.position_km.shape == (3,)
    assert state.velocity_km_s.shape == (3,)
    assert 6500 < np.linalg.norm(state.position_km) < 7000
    assert 7.0 < np.linalg.norm(state.velocity_km_s) < 8.0


def test_state_without_elements_unavailable():
    obj = circular_object(7)
    with pytest.raises(PropagationUnavailable) as exc:
        Sgp4StateProvider().state_at(obj, datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert exc.value.norad_id == 7


def test_vectorised_matches_single(iss: TrackedObject):
    provider = Sgp4StateProvider()
    times = [iss.epoch + timedelta(minutes=m) for m in range(0, 95, 5)]
    traj = provider.states_at(iss, times)
    assert traj.positions_km.shape == (len(times), 3)
    assert np.all(traj.valid)
    for i in (0, 7, len(times) - 1):
        single = provider.state_at(iss, times[i])
        np.testing.assert_allclose(traj.positions_km[i], single.position_km, atol=1e-6)
        np.testing.assert_allclose(traj.velocities_km_s[i], single.velocity_km_s, atol=1e-9)


def test_vectorised_without_elements_all_invalid():
    obj = circular_object(7)
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    traj = Sgp4StateProvider().states_at(obj, [t0, t0 + timedelta(minutes=1)])
    assert not np.any(traj.valid)
    assert np.all(np.isnan(traj.positions_km))


def test_far_future_degrades_gracefully(iss: TrackedObject):
    """Far beyond epoch SGP4 may decay the orbit; failures are masked, never raised."""
    far = iss.epoch + timedelta(days=365 * 50)
    traj = Sgp4StateProvider().states_at(iss, [iss.epoch, far])
    assert traj.valid.shape == (2,)
    assert traj.valid[0]
    if not traj.valid[1]:
        assert np.all(np.isnan(traj.positions_km[1]))


class FlakyProvider(OrbitStateProvider):
    """Fails on every other call."""

    def __init__(self):
        self.calls = 0

    def state_at(self, obj, t):
        self.calls += 1
        if self.calls % 2 == 0:
            raise PropagationUnavailable(obj.norad_id, "flaky")
        return StateVector(np.array([7000.0, 0.0, 0.0]), np.array([0.0, 7.5, 0.0]), t)


def test_default_states_at_masks_failures(iss: TrackedObject):
    times = [iss.epoch + timedelta(minutes=m) for m in range(4)]
    traj = FlakyProvider().states_at(iss, times)
    assert traj.valid.tolist() == [True, False, True, False]
    assert np.all(np.isnan(traj.positions_km[1]))
    assert traj.positions_km[0][0] == 7000.0
