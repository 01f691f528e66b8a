"""Batch orchestration: screening runs, planning runs and feed ingestion.

Every run works against one explicitly opened :class:`CatalogStore`. Events
and objects are processed independently: one failing item is recorded and
the run carries on. Only an unavailable catalog aborts a run.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from orbitops.catalog.conjunctions import ConjunctionCatalog
from orbitops.catalog.objects import ObjectCatalog
from orbitops.catalog.store import CatalogStore
from orbitops.config import Settings, get_settings
from orbitops.core import maneuver
from orbitops.core.events import ConjunctionEvent, ManeuverSolution, PlanStatus, as_utc
from orbitops.core.objects import TrackedObject
from orbitops.core.propagation import OrbitStateProvider, Sgp4StateProvider
from orbitops.core.risk import classify
from orbitops.core.screening import ScreeningReport, ScreeningWindow, screen
from orbitops.data.keeptrack import KeepTrackClient, parse_feed_records
from orbitops.errors import BudgetExceeded, InvalidStateVector, ObjectNotFound, PropagationUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanOutcome:
    """Result of planning one event.

    Attributes:
        event_id: Catalog id of the event.
        status: PLANNED, NOT_REQUIRED, NO_SOLUTION or FAILED.
        solution: The attached solution (PLANNED and NOT_REQUIRED only).
        error: Why planning failed (FAILED only).
    """

    event_id: int
    status: PlanStatus
    solution: ManeuverSolution | None = None
    error: str | None = None


@dataclass(frozen=True)
class FeedIngestResult:
    objects: int
    events: int


class ConjunctionService:
    """Screening, planning and risk queries over one catalog store."""

    def __init__(
        self,
        store: CatalogStore,
        provider: OrbitStateProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.provider = provider or Sgp4StateProvider()
        self.settings = settings or get_settings()
        self.objects = ObjectCatalog(store)
        self.conjunctions = ConjunctionCatalog(store)
        self.last_report: ScreeningReport | None = None

    @classmethod
    @contextmanager
    def open(
        cls,
        settings: Settings | None = None,
        provider: OrbitStateProvider | None = None,
    ) -> Iterator[ConjunctionService]:
        """Open the configured store for the duration of one run."""
        settings = settings or get_settings()
        store = CatalogStore(settings.database_url)
        store.open()
        try:
            yield cls(store, provider=provider, settings=settings)
        finally:
            store.close()

    def screen_object(self, primary_id: int, window: ScreeningWindow | None = None) -> int:
        """Screen one object against the catalog and commit the result.

        Stale local events of the object are replaced atomically; external
        events and stored maneuver solutions of re-detected events survive.

        Returns:
            Number of conjunction events stored.

        Raises:
            ObjectNotFound: If the object is not catalogued.
            PropagationUnavailable: If the object itself cannot be propagated.
            CatalogUnavailable: If the store fails.
        """
        primary = self.objects.get(primary_id)
        window = window or self.settings.screening_window()
        tolerance = self.settings.shell_tolerance_km
        candidates = self.objects.shell_candidates(primary, tolerance)

        report = screen(
            primary,
            candidates,
            window,
            self.provider,
            tolerance_km=tolerance,
            relative_speed_epsilon_km_s=self.settings.relative_speed_epsilon_km_s,
            max_workers=self.settings.screening_workers,
            budget_seconds=self.settings.screening_budget_s,
        )
        self.last_report = report
        return self.conjunctions.commit_screening(primary_id, report.events, report.unresolved_ids)

    def plan_maneuvers(self, primary_id: int, now: datetime | None = None) -> list[PlanOutcome]:
        """Plan every high-risk, urgent event in which the object is primary.

        Each event is planned independently; failures are reported per
        event and leave the stored event untouched.

        Raises:
            ObjectNotFound: If the primary is not catalogued.
            CatalogUnavailable: If the store fails.
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        primary = self.objects.get(primary_id)
        criteria = self.settings.risk_criteria()
        config = self.settings.maneuver_config()
        events = self.conjunctions.list_high_risk(criteria, now, urgent_only=True, primary_id=primary_id)
        logger.info("NORAD %d: %d actionable events to plan", primary_id, len(events))

        budget = self.settings.planning_budget_s
        deadline = time.monotonic() + budget if budget is not None else None

        outcomes: list[PlanOutcome] = []
        for event in events:
            try:
                if deadline is not None and time.monotonic() > deadline:
                    raise BudgetExceeded("planning budget exhausted")
                outcomes.append(self._plan_event(event, primary, config))
            except (ObjectNotFound, PropagationUnavailable, InvalidStateVector, ValueError, BudgetExceeded) as e:
                logger.warning("Planning event %s failed: %s", event.event_id, e)
                outcomes.append(PlanOutcome(event_id=event.event_id, status=PlanStatus.FAILED, error=str(e)))
        return outcomes

    def _plan_event(self, event: ConjunctionEvent, primary: TrackedObject, config: maneuver.ManeuverConfig) -> PlanOutcome:
        secondary = self.objects.get(event.secondary_norad_id)
        solution = maneuver.plan(event, primary, secondary, config, self.provider)
        if solution is None:
            status = PlanStatus.NO_SOLUTION
        elif solution.requires_maneuver:
            status = PlanStatus.PLANNED
        else:
            status = PlanStatus.NOT_REQUIRED
        self.conjunctions.attach_solution(event.event_id, status, solution)
        return PlanOutcome(event_id=event.event_id, status=status, solution=solution)

    def query_risks(
        self,
        primary_id: int | None = None,
        high_risk: bool | None = None,
        urgent: bool | None = None,
        now: datetime | None = None,
    ) -> list[ConjunctionEvent]:
        """Stored events, optionally filtered by object and risk flags.

        With ``primary_id`` set, events where the object is either side are
        returned. A flag left as None does not filter.
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        if primary_id is None:
            events = self.conjunctions.list_events()
        else:
            events = self.conjunctions.list_by_object(primary_id)

        criteria = self.settings.risk_criteria()
        selected = []
        for event in events:
            flags = classify(event, criteria, now)
            if high_risk is not None and flags.high_risk != high_risk:
                continue
            if urgent is not None and flags.urgent != urgent:
                continue
            selected.append(event)
        return selected

    def ingest_feed(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Replace the external event picture with the given feed records.

        Events whose primary is a user-defined asset are kept.
        """
        epsilon = self.settings.relative_speed_epsilon_km_s
        events = parse_feed_records(records, epsilon)
        return self.conjunctions.replace_external(
            events, preserve_primaries=self.objects.custom_ids(), relative_speed_epsilon_km_s=epsilon,
        )

    def refresh_external_feed(
        self,
        client: KeepTrackClient,
        *,
        catalog: bool = True,
        feed: bool = True,
    ) -> FeedIngestResult:
        """Pull the catalog and/or conjunction feed and store them.

        Raises:
            requests.HTTPError: If a download fails; nothing of that part is stored.
        """
        n_objects = n_events = 0
        if catalog:
            n_objects = self.objects.upsert_objects(client.fetch_catalog())
        if feed:
            events = client.fetch_conjunctions()
            n_events = self.conjunctions.replace_external(
                events,
                preserve_primaries=self.objects.custom_ids(),
                relative_speed_epsilon_km_s=self.settings.relative_speed_epsilon_km_s,
            )
        return FeedIngestResult(objects=n_objects, events=n_events)

    def plan_all_feed_objects(self, now: datetime | None = None) -> dict[int, list[PlanOutcome]]:
        """Plan for every object named in the external feed, except user-defined assets.

        Objects are independent: an object that is not catalogued is logged
        and skipped.
        """
        custom = self.objects.custom_ids()
        results: dict[int, list[PlanOutcome]] = {}
        for norad_id in self.conjunctions.feed_object_ids():
            if norad_id in custom:
                continue
            try:
                results[norad_id] = self.plan_maneuvers(norad_id, now)
            except ObjectNotFound as e:
                logger.warning("Skipping feed object: %s", e)
        planned = sum(1 for outs in results.values() for o in outs if o.status is PlanStatus.PLANNED)
        logger.info("Feed planning: %d objects, %d burns planned", len(results), planned)
        return results
