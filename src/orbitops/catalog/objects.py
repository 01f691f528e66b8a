"""Object catalog: tracked objects keyed by NORAD id.

Screening and planning only read from it; ingestion writes through
:meth:`ObjectCatalog.upsert_objects` and :meth:`ObjectCatalog.add_custom`.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from sqlalchemy import select

from orbitops.catalog.models import TrackedObjectRow
from orbitops.catalog.store import CatalogStore
from orbitops.core.events import as_utc
from orbitops.core.objects import ObjectClass, TrackedObject
from orbitops.core.tle import TLE
from orbitops.errors import ObjectNotFound

logger = logging.getLogger(__name__)


def _row_to_object(row: TrackedObjectRow) -> TrackedObject:
    tle = None
    if row.line1 and row.line2:
        try:
            tle = TLE.from_lines(row.line1, row.line2, name=row.name)
        except ValueError as e:
            # Still returned so screening can count it as a failed candidate.
            logger.warning("Stored elements of NORAD %d are malformed: %s", row.norad_id, e)
    return TrackedObject(
        norad_id=row.norad_id,
        name=row.name,
        tle=tle,
        epoch=as_utc(row.epoch) if row.epoch else None,
        apogee_km=row.apogee_km,
        perigee_km=row.perigee_km,
        inclination_deg=row.inclination_deg,
        object_class=ObjectClass(row.object_class),
        rcs_size=row.rcs_size,
        country=row.country,
        is_custom=row.is_custom,
    )


def _fill_row(row: TrackedObjectRow, obj: TrackedObject) -> None:
    row.name = obj.name
    row.line1 = obj.tle.line1 if obj.tle else None
    row.line2 = obj.tle.line2 if obj.tle else None
    row.epoch = as_utc(obj.epoch).replace(tzinfo=None) if obj.epoch else None
    row.apogee_km = obj.apogee_km
    row.perigee_km = obj.perigee_km
    row.inclination_deg = obj.inclination_deg
    row.object_class = obj.object_class.value
    row.rcs_size = obj.rcs_size
    row.country = obj.country
    row.is_custom = obj.is_custom


class ObjectCatalog:
    """Tracked objects stored in a :class:`CatalogStore`."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def get(self, norad_id: int) -> TrackedObject:
        """Raises: ObjectNotFound."""
        with self._store.transaction() as session:
            row = session.get(TrackedObjectRow, norad_id)
            if row is None:
                raise ObjectNotFound(norad_id)
            return _row_to_object(row)

    def shell_candidates(self, primary: TrackedObject, tolerance_km: float = 0.0) -> list[TrackedObject]:
        """Objects whose shell can intersect the primary's, filtered in the database."""
        stmt = (
            select(TrackedObjectRow)
            .where(
                TrackedObjectRow.norad_id != primary.norad_id,
                TrackedObjectRow.apogee_km >= primary.perigee_km - tolerance_km,
                TrackedObjectRow.perigee_km <= primary.apogee_km + tolerance_km,
            )
            .order_by(TrackedObjectRow.norad_id)
        )
        with self._store.transaction() as session:
            return [_row_to_object(row) for row in session.execute(stmt).scalars()]

    def custom_ids(self) -> set[int]:
        """NORAD ids of user-defined assets."""
        with self._store.transaction() as session:
            rows = session.execute(select(TrackedObjectRow.norad_id).where(TrackedObjectRow.is_custom.is_(True)))
            return set(rows.scalars())

    def upsert_objects(self, objects: Iterable[TrackedObject]) -> int:
        """Store ingested objects; user-defined assets are never overwritten.

        Returns:
            Number of rows inserted or updated.
        """
        written = 0
        with self._store.transaction() as session:
            for obj in objects:
                row = session.get(TrackedObjectRow, obj.norad_id)
                if row is None:
                    row = TrackedObjectRow(norad_id=obj.norad_id)
                    _fill_row(row, obj)
                    session.add(row)
                elif row.is_custom and not obj.is_custom:
                    logger.debug("Ingestion skipped user-defined NORAD %d", obj.norad_id)
                    continue
                else:
                    _fill_row(row, obj)
                written += 1
        logger.info("Stored %d tracked objects", written)
        return written

    def add_custom(
        self,
        tle: TLE,
        name: str | None = None,
        object_class: ObjectClass = ObjectClass.PAYLOAD,
    ) -> TrackedObject:
        """Register (or update) a user-defined asset from its elements."""
        obj = TrackedObject.from_tle(tle, object_class=object_class, is_custom=True)
        if name:
            obj = replace(obj, name=name)
        self.upsert_objects([obj])
        logger.info("Registered custom asset %s (NORAD %d)", obj.name, obj.norad_id)
        return obj
