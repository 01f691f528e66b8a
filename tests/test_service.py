"""Tests for batch orchestration over a catalog store."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from orbitops.config import Settings
from orbitops.core.events import ConjunctionEvent, PlanStatus, Provenance
from orbitops.core.screening import ScreeningWindow
from orbitops.errors import CatalogUnavailable, ObjectNotFound
from orbitops.service import ConjunctionService
from tests.orbits import TCA, CrossingOrbitsProvider, circular_object

BEFORE_TCA = TCA - timedelta(hours=12)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite:///{tmp_path / 'svc.db'}", screening_workers=2)


@pytest.fixture
def service(store, settings) -> ConjunctionService:
    svc = ConjunctionService(store, CrossingOrbitsProvider(1, 2, miss_km=1.25), settings)
    svc.objects.upsert_objects([
        circular_object(1, "PRIMARY"),
        circular_object(2, "DEBRIS"),
        circular_object(4, "FAR AWAY", radius_km=42164.0),
    ])
    return svc


def tca_window() -> ScreeningWindow:
    return ScreeningWindow(TCA - timedelta(minutes=10), duration_seconds=1200, step_seconds=10)


def external(primary: int, secondary: int, miss_km: float = 1.25, probability: float | None = None) -> dict:
    return {
        "SAT1": primary, "SAT2": secondary, "SAT1_NAME": f"OBJ {primary}", "SAT2_NAME": f"OBJ {secondary}",
        "TOCA": TCA.isoformat(), "MIN_RNG": miss_km, "REL_SPEED": 10.7, "MAX_PROB": probability,
    }


class TestScreenObject:
    def test_stores_events(self, service):
        assert service.screen_object(1, tca_window()) == 1
        (event,) = service.conjunctions.list_events(1)
        assert event.secondary_norad_id == 2
        assert event.provenance is Provenance.LOCAL
        assert service.last_report.pruned == 1

    def test_rescreen_is_idempotent_and_keeps_solution(self, service):
        service.screen_object(1, tca_window())
        (outcome,) = service.plan_maneuvers(1, now=BEFORE_TCA)
        assert outcome.status is PlanStatus.PLANNED

        service.screen_object(1, tca_window())
        (event,) = service.conjunctions.list_events(1)
        assert event.event_id == outcome.event_id
        assert event.solution == outcome.solution

    def test_rescreen_keeps_events_of_unresolved_candidates(self, service):
        service.screen_object(1, tca_window())
        (outcome,) = service.plan_maneuvers(1, now=BEFORE_TCA)

        service.provider = CrossingOrbitsProvider(1, 99, miss_km=1.25)
        assert service.screen_object(1, tca_window()) == 0
        assert service.last_report.failed == 1
        assert service.last_report.unresolved_ids == {2}

        (event,) = service.conjunctions.list_events(1)
        assert event.event_id == outcome.event_id
        assert event.maneuver_status is PlanStatus.PLANNED
        assert event.solution == outcome.solution

    def test_rescreen_removes_events_no_longer_detected(self, service):
        service.screen_object(1, tca_window())
        service.provider = CrossingOrbitsProvider(1, 2, miss_km=40.0)
        assert service.screen_object(1, tca_window()) == 0
        assert service.last_report.unresolved_ids == set()
        assert service.conjunctions.list_events(1) == []

    def test_unknown_object(self, service):
        with pytest.raises(ObjectNotFound):
            service.screen_object(999, tca_window())


class TestPlanManeuvers:
    def test_plans_actionable_event(self, service):
        service.screen_object(1, tca_window())
        (outcome,) = service.plan_maneuvers(1, now=BEFORE_TCA)
        assert outcome.status is PlanStatus.PLANNED
        assert 4.8 < outcome.solution.delta_v_mps < 5.6
        stored = service.conjunctions.get(outcome.event_id)
        assert stored.maneuver_status is PlanStatus.PLANNED
        assert stored.solution == outcome.solution

    def test_high_risk_but_not_urgent_is_skipped(self, service):
        service.screen_object(1, tca_window())
        assert service.plan_maneuvers(1, now=TCA - timedelta(hours=72)) == []
        (event,) = service.conjunctions.list_events(1)
        assert event.maneuver_status is None

    def test_past_event_is_skipped(self, service):
        service.screen_object(1, tca_window())
        assert service.plan_maneuvers(1, now=TCA + timedelta(minutes=1)) == []

    def test_only_events_where_object_is_primary(self, service):
        service.screen_object(1, tca_window())
        assert service.plan_maneuvers(2, now=BEFORE_TCA) == []

    def test_failure_is_isolated(self, service):
        service.screen_object(1, tca_window())
        service.conjunctions.upsert(
            ConjunctionEvent(1, 3, TCA + timedelta(hours=1), miss_distance_km=0.5, relative_speed_km_s=9.0)
        )
        outcomes = {o.event_id: o for o in service.plan_maneuvers(1, now=BEFORE_TCA)}
        statuses = sorted(o.status.value for o in outcomes.values())
        assert statuses == ["failed", "planned"]
        failed = next(o for o in outcomes.values() if o.status is PlanStatus.FAILED)
        assert "3" in failed.error
        assert service.conjunctions.get(failed.event_id).maneuver_status is None

    def test_no_solution_recorded(self, store, tmp_path):
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'x.db'}", max_delta_v_mps=1.0)
        svc = ConjunctionService(store, CrossingOrbitsProvider(1, 2, miss_km=1.25), settings)
        svc.objects.upsert_objects([circular_object(1), circular_object(2)])
        svc.screen_object(1, tca_window())
        (outcome,) = svc.plan_maneuvers(1, now=BEFORE_TCA)
        assert outcome.status is PlanStatus.NO_SOLUTION
        assert outcome.solution is None
        assert svc.conjunctions.get(outcome.event_id).maneuver_status is PlanStatus.NO_SOLUTION

    def test_not_required(self, store, tmp_path):
        settings = Settings(
            database_url=f"sqlite:///{tmp_path / 'x.db'}", safe_miss_distance_km=1.0, risk_safety_floor_km=5.0,
        )
        svc = ConjunctionService(store, CrossingOrbitsProvider(1, 2, miss_km=1.25), settings)
        svc.objects.upsert_objects([circular_object(1), circular_object(2)])
        svc.screen_object(1, tca_window())
        (outcome,) = svc.plan_maneuvers(1, now=BEFORE_TCA)
        assert outcome.status is PlanStatus.NOT_REQUIRED
        assert outcome.solution.delta_v_mps == 0.0


class TestQueryRisks:
    def test_filters(self, service):
        service.screen_object(1, tca_window())
        service.conjunctions.upsert(ConjunctionEvent(1, 4, TCA, miss_distance_km=8.0, relative_speed_km_s=3.0))

        assert len(service.query_risks(now=BEFORE_TCA)) == 2
        assert [e.secondary_norad_id for e in service.query_risks(1, high_risk=True, now=BEFORE_TCA)] == [2]
        assert [e.secondary_norad_id for e in service.query_risks(1, high_risk=False, now=BEFORE_TCA)] == [4]
        assert len(service.query_risks(2, now=BEFORE_TCA)) == 1
        assert service.query_risks(1, urgent=True, now=TCA - timedelta(days=4)) == []


class TestFeed:
    def test_ingest_feed_preserves_custom_assets(self, service):
        service.objects.upsert_objects([circular_object(10, "MY SAT", is_custom=True)])
        service.ingest_feed([external(10, 2)])
        service.ingest_feed([external(1, 2)])
        keys = {(e.primary_norad_id, e.provenance) for e in service.conjunctions.list_events()}
        assert keys == {(10, Provenance.EXTERNAL), (1, Provenance.EXTERNAL)}

    def test_ingest_feed_drops_degenerate_records(self, service):
        degenerate = {**external(5, 6), "REL_SPEED": 0.0}
        assert service.ingest_feed([degenerate, external(1, 2)]) == 1
        assert [e.primary_norad_id for e in service.conjunctions.list_events()] == [1]

    def test_refresh_external_feed(self, service):
        client = MagicMock()
        client.fetch_catalog.return_value = [circular_object(7, "NEW")]
        client.fetch_conjunctions.return_value = []
        result = service.refresh_external_feed(client)
        assert result.objects == 1
        assert result.events == 0
        assert service.objects.get(7).name == "NEW"

    def test_refresh_feed_only(self, service):
        client = MagicMock()
        client.fetch_conjunctions.return_value = []
        service.refresh_external_feed(client, catalog=False)
        client.fetch_catalog.assert_not_called()

    def test_plan_all_feed_objects(self, service):
        service.objects.upsert_objects([circular_object(10, "MY SAT", is_custom=True)])
        service.ingest_feed([external(1, 2), external(10, 2), external(48274, 25544)])
        results = service.plan_all_feed_objects(now=BEFORE_TCA)

        assert 10 not in results
        assert 48274 not in results  # not catalogued
        assert [o.status for o in results[1]] == [PlanStatus.PLANNED]
        assert results[2] == []


class TestOpen:
    def test_open_and_close(self, settings):
        with ConjunctionService.open(settings) as svc:
            assert svc.store.is_open
        assert not svc.store.is_open

    def test_unavailable_store(self, tmp_path):
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}")
        with pytest.raises(CatalogUnavailable):
            with ConjunctionService.open(settings):
                pass
