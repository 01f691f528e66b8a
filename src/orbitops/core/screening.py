"""Conjunction screening — identify close approaches between a primary and a catalog."""
from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import numpy as np

from orbitops.core.events import ConjunctionEvent, Provenance, as_utc
from orbitops.core.objects import TrackedObject
from orbitops.core.propagation import OrbitStateProvider, Sgp4StateProvider, Trajectory
from orbitops.errors import BudgetExceeded, DuplicateOrbitDetected, PropagationUnavailable
from orbitops.utils.constants import (
    DEFAULT_MISS_DISTANCE_KM,
    DEFAULT_SCREENING_STEP_S,
    DEFAULT_SCREENING_WINDOW_HOURS,
    RELATIVE_SPEED_EPSILON_KM_S,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningWindow:
    """Time span and threshold of one screening pass.

    Attributes:
        start_time: First sample time (UTC).
        duration_seconds: Length of the window in seconds.
        step_seconds: Sampling cadence in seconds.
        miss_distance_threshold_km: Sampled minimum distances below this emit an event.
    """

    start_time: datetime
    duration_seconds: float = DEFAULT_SCREENING_WINDOW_HOURS * 3600.0
    step_seconds: float = DEFAULT_SCREENING_STEP_S
    miss_distance_threshold_km: float = DEFAULT_MISS_DISTANCE_KM

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError(f"duration_seconds must be >= 0, got {self.duration_seconds}")
        if self.step_seconds <= 0:
            raise ValueError(f"step_seconds must be > 0, got {self.step_seconds}")
        if self.miss_distance_threshold_km <= 0:
            raise ValueError(f"miss_distance_threshold_km must be > 0, got {self.miss_distance_threshold_km}")
        object.__setattr__(self, "start_time", as_utc(self.start_time))

    @classmethod
    def starting_now(
        cls,
        hours: float = DEFAULT_SCREENING_WINDOW_HOURS,
        step_seconds: float = DEFAULT_SCREENING_STEP_S,
        threshold_km: float = DEFAULT_MISS_DISTANCE_KM,
        now: datetime | None = None,
    ) -> ScreeningWindow:
        return cls(
            start_time=now or datetime.now(timezone.utc),
            duration_seconds=hours * 3600.0,
            step_seconds=step_seconds,
            miss_distance_threshold_km=threshold_km,
        )

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration_seconds)

    def sample_times(self) -> list[datetime]:
        """Sample instants ``start + i*step`` for every ``i*step <= duration``."""
        count = int(math.floor(self.duration_seconds / self.step_seconds + 1e-9)) + 1
        return [self.start_time + timedelta(seconds=i * self.step_seconds) for i in range(count)]

    def contains(self, t: datetime) -> bool:
        return self.start_time <= as_utc(t) <= self.end_time


@dataclass
class ScreeningReport:
    """Events found for one primary plus per-candidate diagnostics.

    Attributes:
        primary_norad_id: The screened object.
        window: Window that was screened.
        events: Emitted conjunctions, sorted by miss distance.
        candidates: Objects offered for screening (primary excluded).
        pruned: Candidates rejected by the orbital-shell pre-filter.
        evaluated: Candidates whose closest approach was computed.
        failed: Candidates skipped for propagation failure or malformed elements.
        duplicates: Candidates discarded as the same physical object.
        timed_out: Candidates abandoned because the budget ran out.
        unresolved_ids: Catalog ids of failed and timed-out candidates; their
            absence from ``events`` says nothing about their risk.
    """

    primary_norad_id: int
    window: ScreeningWindow
    events: list[ConjunctionEvent] = field(default_factory=list)
    candidates: int = 0
    pruned: int = 0
    evaluated: int = 0
    failed: int = 0
    duplicates: int = 0
    timed_out: int = 0
    unresolved_ids: set[int] = field(default_factory=set)


def prefilter(
    primary: TrackedObject,
    candidates: list[TrackedObject],
    tolerance_km: float = 0.0,
) -> list[TrackedObject]:
    """Keep candidates whose orbital shell can intersect the primary's.

    Drops any candidate whose apogee is below the primary's perigee or whose
    perigee is above the primary's apogee, and the primary itself.

    Args:
        primary: Protected object.
        candidates: Catalog objects to filter.
        tolerance_km: Widens the primary's shell on both sides.

    Returns:
        Candidates that survive the pre-filter, in input order.
    """
    return [
        c for c in candidates
        if c.norad_id != primary.norad_id and primary.shells_overlap(c, tolerance_km)
    ]


def closest_approach(primary: Trajectory, secondary: Trajectory) -> tuple[int, float]:
    """Index and distance of the minimum sampled separation.

    Samples where either trajectory is invalid are skipped. Ties resolve
    to the earliest sample.

    Raises:
        PropagationUnavailable: If no sample is valid for both objects.
    """
    mask = primary.valid & secondary.valid
    if not np.any(mask):
        raise PropagationUnavailable(None, "no common valid samples")

    distances = np.linalg.norm(primary.positions_km - secondary.positions_km, axis=1)
    distances = np.where(mask, distances, np.inf)
    index = int(np.argmin(distances))
    return index, float(distances[index])


def _assess_candidate(
    provider: OrbitStateProvider,
    primary: TrackedObject,
    primary_traj: Trajectory,
    candidate: TrackedObject,
    window: ScreeningWindow,
    relative_speed_epsilon_km_s: float,
    deadline: float | None,
) -> ConjunctionEvent | None:
    if deadline is not None and time.monotonic() > deadline:
        raise BudgetExceeded(f"budget exhausted before NORAD {candidate.norad_id}")

    traj = provider.states_at(candidate, primary_traj.times)
    if deadline is not None and time.monotonic() > deadline:
        raise BudgetExceeded(f"budget exhausted while sampling NORAD {candidate.norad_id}")

    try:
        index, min_distance = closest_approach(primary_traj, traj)
    except PropagationUnavailable:
        raise PropagationUnavailable(candidate.norad_id, f"NORAD {candidate.norad_id} never propagated")

    if min_distance >= window.miss_distance_threshold_km:
        return None

    tca = primary_traj.times[index]
    prim_state = provider.state_at(primary, tca)
    sec_state = provider.state_at(candidate, tca)
    relative_speed = float(np.linalg.norm(prim_state.velocity_km_s - sec_state.velocity_km_s))

    if relative_speed < relative_speed_epsilon_km_s:
        raise DuplicateOrbitDetected(primary.norad_id, candidate.norad_id, relative_speed)

    logger.info(
        "Conjunction NORAD %d / %d (%s): TCA %s, miss %.3f km, rel. speed %.2f km/s",
        primary.norad_id, candidate.norad_id, candidate.name, tca.isoformat(), min_distance, relative_speed,
    )
    return ConjunctionEvent(
        primary_norad_id=primary.norad_id,
        secondary_norad_id=candidate.norad_id,
        tca=tca,
        miss_distance_km=min_distance,
        relative_speed_km_s=relative_speed,
        primary_name=primary.name,
        secondary_name=candidate.name,
        provenance=Provenance.LOCAL,
    )


def screen(
    primary: TrackedObject,
    candidates: list[TrackedObject],
    window: ScreeningWindow,
    provider: OrbitStateProvider | None = None,
    *,
    tolerance_km: float = 0.0,
    relative_speed_epsilon_km_s: float = RELATIVE_SPEED_EPSILON_KM_S,
    max_workers: int | None = None,
    budget_seconds: float | None = None,
) -> ScreeningReport:
    """Screen one primary object against a candidate catalog.

    Multi-stage algorithm:
    1. Orbital-shell pre-filter to drop pairs that can never meet
    2. Time-sampled closest approach for each surviving candidate
    3. Relative-speed check at the closest sample to discard duplicate
       catalog entries of the same object

    Candidates are independent and evaluated on a thread pool; a failure
    on one candidate is counted and never aborts the pass.

    Args:
        primary: Protected object.
        candidates: Catalog objects to screen against.
        window: Time span, cadence and miss-distance threshold.
        provider: State provider. Defaults to SGP4.
        tolerance_km: Shell tolerance of the pre-filter.
        relative_speed_epsilon_km_s: Duplicate-orbit speed floor.
        max_workers: Thread pool size (None lets the executor decide).
        budget_seconds: Wall-clock budget for the whole pass.

    Returns:
        ScreeningReport with events sorted by miss distance.

    Raises:
        PropagationUnavailable: If the primary cannot be propagated at any
            sample of the window.
    """
    provider = provider or Sgp4StateProvider()
    offered = [c for c in candidates if c.norad_id != primary.norad_id]
    report = ScreeningReport(primary_norad_id=primary.norad_id, window=window, candidates=len(offered))

    survivors = prefilter(primary, offered, tolerance_km)
    report.pruned = len(offered) - len(survivors)
    logger.info(
        "Screening NORAD %d: %d candidates, %d after shell pre-filter",
        primary.norad_id, len(offered), len(survivors),
    )
    if not survivors:
        return report

    deadline = time.monotonic() + budget_seconds if budget_seconds is not None else None

    times = window.sample_times()
    primary_traj = provider.states_at(primary, times)
    if not np.any(primary_traj.valid):
        raise PropagationUnavailable(primary.norad_id, f"Primary NORAD {primary.norad_id} cannot be propagated")

    events: list[ConjunctionEvent] = []
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(
                _assess_candidate,
                provider, primary, primary_traj, cand, window, relative_speed_epsilon_km_s, deadline,
            ): cand
            for cand in survivors
        }

        for future in as_completed(futures):
            cand = futures[future]
            try:
                event = future.result()
            except DuplicateOrbitDetected as e:
                report.duplicates += 1
                logger.info("Discarded: %s", e)
                continue
            except BudgetExceeded:
                report.timed_out += 1
                report.unresolved_ids.add(cand.norad_id)
                continue
            except (PropagationUnavailable, ValueError) as e:
                report.failed += 1
                report.unresolved_ids.add(cand.norad_id)
                logger.warning("Skipping NORAD %d: %s", cand.norad_id, e)
                continue

            report.evaluated += 1
            if event is not None:
                events.append(event)

    if report.timed_out:
        logger.warning("Screening NORAD %d: budget exhausted, %d candidates not screened",
                       primary.norad_id, report.timed_out)

    events.sort(key=lambda e: (e.miss_distance_km, e.secondary_norad_id))
    report.events = events
    logger.info(
        "Screening NORAD %d complete: %d events, %d failed, %d duplicates",
        primary.norad_id, len(events), report.failed, report.duplicates,
    )
    return report
