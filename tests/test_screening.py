"""Tests for conjunction screening."""
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from orbitops.core.events import Provenance
from orbitops.core.objects import TrackedObject
from orbitops.core.propagation import Trajectory
from orbitops.core.screening import ScreeningWindow, closest_approach, prefilter, screen
from orbitops.core.tle import TLE
from orbitops.errors import PropagationUnavailable
from tests.orbits import ISS_LINE1, ISS_LINE2, TCA, CrossingOrbitsProvider, circular_object


def window_around_tca(half_width_s: float = 600.0, step_s: float = 10.0, threshold_km: float = 5.0,
                      offset_s: float = 0.0) -> ScreeningWindow:
    return ScreeningWindow(
        start_time=TCA - timedelta(seconds=half_width_s + offset_s),
        duration_seconds=2 * half_width_s,
        step_seconds=step_s,
        miss_distance_threshold_km=threshold_km,
    )


class SlowProvider(CrossingOrbitsProvider):
    def state_at(self, obj, t):
        time.sleep(0.01)
        return super().state_at(obj, t)


class TestScreeningWindow:
    def test_sample_times_inclusive(self):
        w = ScreeningWindow(TCA, duration_seconds=600, step_seconds=120)
        times = w.sample_times()
        assert len(times) == 6
        assert times[0] == TCA
        assert times[-1] == TCA + timedelta(seconds=600)

    def test_sample_times_partial_step(self):
        w = ScreeningWindow(TCA, duration_seconds=700, step_seconds=120)
        assert w.sample_times()[-1] == TCA + timedelta(seconds=600)

    def test_zero_duration_single_sample(self):
        assert ScreeningWindow(TCA, duration_seconds=0).sample_times() == [TCA]

    def test_naive_start_is_utc(self):
        w = ScreeningWindow(datetime(2024, 3, 1, 12, 0, 0))
        assert w.start_time == TCA

    @pytest.mark.parametrize(
        "kwargs",
        [{"duration_seconds": -1}, {"step_seconds": 0}, {"miss_distance_threshold_km": 0}],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            ScreeningWindow(TCA, **kwargs)

    def test_contains(self):
        w = ScreeningWindow(TCA, duration_seconds=3600)
        assert w.contains(TCA + timedelta(minutes=30))
        assert not w.contains(TCA - timedelta(seconds=1))
        assert w.end_time == TCA + timedelta(hours=1)

    def test_starting_now(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        w = ScreeningWindow.starting_now(hours=2, step_seconds=30, threshold_km=3, now=now)
        assert w.start_time == now
        assert w.duration_seconds == 7200
        assert w.miss_distance_threshold_km == 3


class TestPrefilter:
    def test_removes_geo(self, iss: TrackedObject, geo_tle: TLE):
        geo = TrackedObject.from_tle(geo_tle)
        assert prefilter(iss, [geo]) == []

    def test_excludes_self(self, iss: TrackedObject):
        assert prefilter(iss, [iss]) == []

    def test_keeps_overlapping_shell(self, iss: TrackedObject):
        crossing = circular_object(5, radius_km=6378.137 + (iss.perigee_km + iss.apogee_km) / 2)
        assert prefilter(iss, [crossing]) == [crossing]

    def test_tolerance_widens_shell(self, iss: TrackedObject, css_tle: TLE):
        css = TrackedObject.from_tle(css_tle)
        assert css.apogee_km < iss.perigee_km
        gap = iss.perigee_km - css.apogee_km
        assert prefilter(iss, [css]) == []
        assert prefilter(iss, [css], tolerance_km=gap + 1.0) == [css]


class TestClosestApproach:
    def _traj(self, positions, valid):
        positions = np.array(positions, dtype=float)
        return Trajectory([TCA] * len(positions), positions, np.zeros_like(positions), np.array(valid))

    def test_skips_invalid_samples(self):
        a = self._traj([[0, 0, 0], [0, 0, 0], [0, 0, 0]], [True, True, True])
        b = self._traj([[1, 0, 0], [np.nan] * 3, [2, 0, 0]], [True, False, True])
        assert closest_approach(a, b) == (0, 1.0)

    def test_ties_resolve_to_earliest(self):
        a = self._traj([[0, 0, 0], [0, 0, 0]], [True, True])
        b = self._traj([[3, 0, 0], [0, 3, 0]], [True, True])
        assert closest_approach(a, b)[0] == 0

    def test_no_common_samples(self):
        a = self._traj([[0, 0, 0], [np.nan] * 3], [True, False])
        b = self._traj([[np.nan] * 3, [1, 0, 0]], [False, True])
        with pytest.raises(PropagationUnavailable):
            closest_approach(a, b)


class TestScreen:
    def test_detects_conjunction(self, crossing, primary, secondary):
        report = screen(primary, [secondary], window_around_tca(), crossing)
        assert len(report.events) == 1
        event = report.events[0]
        assert event.primary_norad_id == 1
        assert event.secondary_norad_id == 2
        assert event.tca == TCA
        assert event.miss_distance_km == pytest.approx(1.25, abs=1e-6)
        rn = crossing.radius_km * crossing.mean_motion
        assert event.relative_speed_km_s == pytest.approx(rn * np.sqrt(2), rel=1e-3)
        assert event.provenance is Provenance.LOCAL
        assert event.secondary_name == "SECONDARY"
        assert report.evaluated == 1

    def test_threshold_excludes(self, crossing, primary, secondary):
        report = screen(primary, [secondary], window_around_tca(threshold_km=1.0), crossing)
        assert report.events == []
        assert report.evaluated == 1

    def test_tca_within_window(self, crossing, primary, secondary):
        window = window_around_tca(offset_s=300.0)
        report = screen(primary, [secondary], window, crossing)
        for event in report.events:
            assert window.contains(event.tca)

    def test_finer_steps_converge(self, crossing, primary, secondary):
        """Sampled miss distance approaches the true minimum as the step shrinks."""
        errors = []
        for step in (10.0, 1.0, 0.1):
            window = ScreeningWindow(
                start_time=TCA - timedelta(seconds=603.33),
                duration_seconds=1200.0,
                step_seconds=step,
                miss_distance_threshold_km=100.0,
            )
            report = screen(primary, [secondary], window, crossing)
            assert len(report.events) == 1
            errors.append(report.events[0].miss_distance_km - 1.25)
        assert all(e >= -1e-9 for e in errors)
        assert errors[0] >= errors[1] >= errors[2]
        assert errors[2] < 0.1

    def test_duplicate_orbit_discarded(self, primary, secondary):
        provider = CrossingOrbitsProvider(1, 2, miss_km=1.25, extra={3: "equatorial"})
        twin = circular_object(3, "TWIN")
        report = screen(primary, [secondary, twin], window_around_tca(), provider)
        assert [e.secondary_norad_id for e in report.events] == [2]
        assert report.duplicates == 1

    def test_duplicate_catalog_entry_sgp4(self, iss: TrackedObject):
        copy = TrackedObject.from_tle(
            TLE.from_lines(ISS_LINE1.replace("25544", "99999"), ISS_LINE2.replace("25544", "99999"), name="ISS COPY")
        )
        window = ScreeningWindow(iss.epoch, duration_seconds=3600, step_seconds=60)
        report = screen(iss, [copy], window)
        assert report.events == []
        assert report.duplicates == 1

    def test_candidate_failure_isolated(self, crossing, primary, secondary):
        unknown = circular_object(9, "UNKNOWN")
        report = screen(primary, [unknown, secondary], window_around_tca(), crossing)
        assert [e.secondary_norad_id for e in report.events] == [2]
        assert report.failed == 1
        assert report.evaluated == 1

    def test_primary_unavailable_raises(self, crossing, secondary):
        lost = circular_object(9, "LOST")
        with pytest.raises(PropagationUnavailable):
            screen(lost, [secondary], window_around_tca(), crossing)

    def test_prefilter_counts(self, crossing, primary, secondary):
        far = circular_object(4, radius_km=42164.0)
        report = screen(primary, [primary, far, secondary], window_around_tca(), crossing)
        assert report.candidates == 2
        assert report.pruned == 1
        assert len(report.events) == 1

    def test_empty_catalog(self, crossing, primary):
        report = screen(primary, [], window_around_tca(), crossing)
        assert report.events == []
        assert report.candidates == 0

    def test_budget_exhausted(self, primary, secondary):
        provider = SlowProvider(1, 2, miss_km=1.25)
        window = window_around_tca(half_width_s=20.0, step_s=10.0)
        report = screen(primary, [secondary], window, provider, budget_seconds=0.001)
        assert report.timed_out == 1
        assert report.events == []

    def test_sorted_by_miss_distance(self, iss: TrackedObject, css_tle: TLE):
        css = TrackedObject.from_tle(css_tle)
        twin_orbit = circular_object(7, radius_km=6378.137 + iss.perigee_km + 1.0)
        window = ScreeningWindow(iss.epoch, duration_seconds=6 * 3600, step_seconds=60,
                                 miss_distance_threshold_km=20000.0)
        report = screen(iss, [css, twin_orbit], window, tolerance_km=200.0)
        distances = [e.miss_distance_km for e in report.events]
        assert distances == sorted(distances)
        # the TLE-less object cannot be evaluated by SGP4
        assert report.failed == 1
