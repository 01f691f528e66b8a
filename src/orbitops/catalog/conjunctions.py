"""Conjunction catalog: keyed upserts, refresh sweeps and risk queries.

Identity is (primary, secondary, TCA) and is enforced by the table's
unique constraint. An insert that collides with an existing row, whether
found up front or created concurrently by another writer, becomes an
update of that row. Maneuver solutions survive re-detection.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orbitops.catalog.models import ConjunctionRow, utcnow
from orbitops.catalog.store import CatalogStore
from orbitops.core.events import (
    BurnDirection,
    ConjunctionEvent,
    ManeuverSolution,
    PlanStatus,
    Provenance,
    as_utc,
)
from orbitops.core.risk import RiskCriteria, is_high_risk, is_urgent
from orbitops.utils.constants import RELATIVE_SPEED_EPSILON_KM_S

logger = logging.getLogger(__name__)


def _naive_utc(t: datetime) -> datetime:
    return as_utc(t).replace(tzinfo=None)


def _row_to_event(row: ConjunctionRow) -> ConjunctionEvent:
    solution = None
    if row.burn_delta_v_mps is not None:
        solution = ManeuverSolution(
            delta_v_mps=row.burn_delta_v_mps,
            direction=BurnDirection(row.burn_direction),
            burn_time=as_utc(row.burn_time),
            resulting_apogee_km=row.resulting_apogee_km,
            resulting_perigee_km=row.resulting_perigee_km,
            resulting_separation_km=row.resulting_separation_km,
        )
    return ConjunctionEvent(
        primary_norad_id=row.primary_norad_id,
        secondary_norad_id=row.secondary_norad_id,
        tca=as_utc(row.tca),
        miss_distance_km=row.miss_distance_km,
        relative_speed_km_s=row.relative_speed_km_s,
        primary_name=row.primary_name,
        secondary_name=row.secondary_name,
        probability=row.probability,
        provenance=Provenance(row.provenance),
        solution=solution,
        maneuver_status=PlanStatus(row.maneuver_status) if row.maneuver_status else None,
        created_at=as_utc(row.created_at) if row.created_at else None,
        event_id=row.id,
    )


def _write_solution(row: ConjunctionRow, status: PlanStatus | None, solution: ManeuverSolution | None) -> None:
    row.maneuver_status = status.value if status is not None else None
    row.burn_delta_v_mps = solution.delta_v_mps if solution else None
    row.burn_direction = solution.direction.value if solution else None
    row.burn_time = _naive_utc(solution.burn_time) if solution else None
    row.resulting_apogee_km = solution.resulting_apogee_km if solution else None
    row.resulting_perigee_km = solution.resulting_perigee_km if solution else None
    row.resulting_separation_km = solution.resulting_separation_km if solution else None
    row.planned_at = utcnow() if status is not None else None


class ConjunctionCatalog:
    """Conjunction events stored in a :class:`CatalogStore`."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    # --- writes ---

    def upsert(self, event: ConjunctionEvent, *, replace_solution: bool = False) -> ConjunctionEvent:
        """Insert the event, or merge it into the row with the same key.

        Args:
            event: Event to store.
            replace_solution: Overwrite the stored maneuver solution with the
                event's (possibly absent) one instead of keeping it.

        Returns:
            The stored event, including its row id.
        """
        with self._store.transaction() as session:
            row = self._upsert(session, event, replace_solution)
            session.flush()
            return _row_to_event(row)

    def upsert_many(self, events: Iterable[ConjunctionEvent], *, replace_solution: bool = False) -> int:
        """Upsert all events in one transaction; all or none are written."""
        count = 0
        with self._store.transaction() as session:
            for event in events:
                self._upsert(session, event, replace_solution)
                count += 1
        return count

    def commit_screening(
        self,
        primary_id: int,
        events: list[ConjunctionEvent],
        unresolved_secondaries: Iterable[int] = (),
    ) -> int:
        """Atomically replace the local screening picture of one primary.

        Local rows of the primary that were not re-detected are removed;
        re-detected ones are updated in place, keeping their solutions.
        Rows against ``unresolved_secondaries`` (candidates the pass could
        not evaluate) are kept as they are. External rows are untouched.

        Returns:
            Number of events written.
        """
        for event in events:
            if event.primary_norad_id != primary_id:
                raise ValueError(f"event for NORAD {event.primary_norad_id} in screening of NORAD {primary_id}")

        keep = {(e.secondary_norad_id, _naive_utc(e.tca)) for e in events}
        unresolved = set(unresolved_secondaries)
        with self._store.transaction() as session:
            stale = session.execute(
                select(ConjunctionRow).where(
                    ConjunctionRow.primary_norad_id == primary_id,
                    ConjunctionRow.provenance == Provenance.LOCAL.value,
                )
            ).scalars().all()
            removed = 0
            for row in stale:
                if row.secondary_norad_id in unresolved:
                    continue
                if (row.secondary_norad_id, row.tca) not in keep:
                    session.delete(row)
                    removed += 1
            session.flush()

            for event in events:
                self._upsert(session, event, replace_solution=False)

        logger.info("NORAD %d: %d events written, %d stale local events removed", primary_id, len(events), removed)
        return len(events)

    def clear_local_for(self, primary_id: int) -> int:
        """Delete every locally screened event of a primary. External rows survive."""
        with self._store.transaction() as session:
            result = session.execute(
                delete(ConjunctionRow).where(
                    ConjunctionRow.primary_norad_id == primary_id,
                    ConjunctionRow.provenance == Provenance.LOCAL.value,
                )
            )
        logger.info("NORAD %d: cleared %d local events", primary_id, result.rowcount)
        return result.rowcount

    def replace_external(
        self,
        events: list[ConjunctionEvent],
        preserve_primaries: Iterable[int] = (),
        relative_speed_epsilon_km_s: float = RELATIVE_SPEED_EPSILON_KM_S,
    ) -> int:
        """Refresh the externally supplied picture in one transaction.

        External rows are dropped unless their primary is listed in
        ``preserve_primaries`` (user-defined assets), then the feed is
        upserted. Degenerate events (relative speed below
        ``relative_speed_epsilon_km_s``) are skipped, never stored.

        Returns:
            Number of feed events written.
        """
        preserved = set(preserve_primaries)
        with self._store.transaction() as session:
            stmt = delete(ConjunctionRow).where(ConjunctionRow.provenance == Provenance.EXTERNAL.value)
            if preserved:
                stmt = stmt.where(ConjunctionRow.primary_norad_id.not_in(preserved))
            removed = session.execute(stmt).rowcount
            written = 0
            for event in events:
                if event.provenance is not Provenance.EXTERNAL:
                    raise ValueError(f"feed event {event.key} is not external")
                if event.relative_speed_km_s < relative_speed_epsilon_km_s:
                    logger.warning("Skipping degenerate feed event %s: relative speed %.2e km/s",
                                   event.key, event.relative_speed_km_s)
                    continue
                self._upsert(session, event, replace_solution=False)
                written += 1
        logger.info("External feed: %d old events cleared, %d written", removed, written)
        return written

    def attach_solution(
        self,
        event_id: int,
        status: PlanStatus,
        solution: ManeuverSolution | None,
    ) -> ConjunctionEvent:
        """Record a planning outcome on an event.

        A NO_SOLUTION outcome leaves the solution absent rather than zero.

        Raises:
            KeyError: If no event has this id.
            ValueError: If status and solution disagree.
        """
        if status is PlanStatus.FAILED:
            raise ValueError("failed planning runs are not recorded")
        if (status is PlanStatus.NO_SOLUTION) != (solution is None):
            raise ValueError(f"status {status.value} inconsistent with solution {solution}")

        with self._store.transaction() as session:
            row = session.get(ConjunctionRow, event_id)
            if row is None:
                raise KeyError(f"no conjunction event with id {event_id}")
            _write_solution(row, status, solution)
            session.flush()
            return _row_to_event(row)

    # --- reads ---

    def get(self, event_id: int) -> ConjunctionEvent:
        with self._store.transaction() as session:
            row = session.get(ConjunctionRow, event_id)
            if row is None:
                raise KeyError(f"no conjunction event with id {event_id}")
            return _row_to_event(row)

    def list_events(self, primary_id: int | None = None) -> list[ConjunctionEvent]:
        stmt = select(ConjunctionRow).order_by(ConjunctionRow.tca, ConjunctionRow.id)
        if primary_id is not None:
            stmt = stmt.where(ConjunctionRow.primary_norad_id == primary_id)
        with self._store.transaction() as session:
            return [_row_to_event(row) for row in session.execute(stmt).scalars()]

    def list_by_object(self, norad_id: int) -> list[ConjunctionEvent]:
        """Events where the object is primary or secondary, ordered by TCA."""
        stmt = (
            select(ConjunctionRow)
            .where(or_(ConjunctionRow.primary_norad_id == norad_id, ConjunctionRow.secondary_norad_id == norad_id))
            .order_by(ConjunctionRow.tca, ConjunctionRow.id)
        )
        with self._store.transaction() as session:
            return [_row_to_event(row) for row in session.execute(stmt).scalars()]

    def list_high_risk(
        self,
        criteria: RiskCriteria,
        now: datetime | None = None,
        *,
        urgent_only: bool = False,
        primary_id: int | None = None,
    ) -> list[ConjunctionEvent]:
        """High-risk events, optionally restricted to urgent ones and one primary."""
        stmt = (
            select(ConjunctionRow)
            .where(ConjunctionRow.miss_distance_km < criteria.safety_floor_km)
            .order_by(ConjunctionRow.tca, ConjunctionRow.id)
        )
        if primary_id is not None:
            stmt = stmt.where(ConjunctionRow.primary_norad_id == primary_id)
        with self._store.transaction() as session:
            events = [_row_to_event(row) for row in session.execute(stmt).scalars()]

        events = [e for e in events if is_high_risk(e, criteria)]
        if urgent_only:
            events = [e for e in events if is_urgent(e, criteria, now)]
        return events

    def feed_object_ids(self) -> list[int]:
        """Objects appearing in externally supplied events, either side."""
        with self._store.transaction() as session:
            rows = session.execute(
                select(ConjunctionRow.primary_norad_id, ConjunctionRow.secondary_norad_id)
                .where(ConjunctionRow.provenance == Provenance.EXTERNAL.value)
            ).all()
        return sorted({norad_id for pair in rows for norad_id in pair})

    # --- internals ---

    def _find(self, session: Session, event: ConjunctionEvent) -> ConjunctionRow | None:
        return session.execute(
            select(ConjunctionRow).where(
                ConjunctionRow.primary_norad_id == event.primary_norad_id,
                ConjunctionRow.secondary_norad_id == event.secondary_norad_id,
                ConjunctionRow.tca == _naive_utc(event.tca),
            )
        ).scalar_one_or_none()

    def _upsert(self, session: Session, event: ConjunctionEvent, replace_solution: bool) -> ConjunctionRow:
        row = self._find(session, event)
        if row is None:
            row = ConjunctionRow(
                primary_norad_id=event.primary_norad_id,
                secondary_norad_id=event.secondary_norad_id,
                primary_name=event.primary_name,
                secondary_name=event.secondary_name,
                tca=_naive_utc(event.tca),
                miss_distance_km=event.miss_distance_km,
                relative_speed_km_s=event.relative_speed_km_s,
                probability=event.probability,
                provenance=event.provenance.value,
            )
            if event.solution is not None or event.maneuver_status is not None:
                _write_solution(row, event.maneuver_status, event.solution)
            try:
                with session.begin_nested():
                    session.add(row)
                return row
            except IntegrityError:
                logger.debug("Key %s inserted concurrently; updating instead", event.key)
                row = self._find(session, event)
                if row is None:
                    raise

        row.miss_distance_km = event.miss_distance_km
        row.relative_speed_km_s = event.relative_speed_km_s
        row.probability = event.probability
        row.provenance = event.provenance.value
        if event.primary_name:
            row.primary_name = event.primary_name
        if event.secondary_name:
            row.secondary_name = event.secondary_name
        if replace_solution:
            _write_solution(row, event.maneuver_status, event.solution)
        return row
