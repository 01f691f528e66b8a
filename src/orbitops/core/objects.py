"""Tracked objects: the catalog's view of a satellite or debris fragment."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from orbitops.core.tle import TLE


class ObjectClass(Enum):
    """Object type as reported by catalog metadata."""

    PAYLOAD = "payload"
    DEBRIS = "debris"
    ROCKET_BODY = "rocket_body"
    UNKNOWN = "unknown"

    @classmethod
    def from_catalog(cls, value: str | None) -> ObjectClass:
        """Map a catalog OBJECT_TYPE field to a class.

        Only the metadata field is consulted; anything unrecognised
        (including a missing value) is UNKNOWN.
        """
        if not value:
            return cls.UNKNOWN
        key = value.strip().upper().replace("-", " ").replace("_", " ")
        return _CATALOG_TYPES.get(key, cls.UNKNOWN)


_CATALOG_TYPES = {
    "PAYLOAD": ObjectClass.PAYLOAD,
    "PAY": ObjectClass.PAYLOAD,
    "DEBRIS": ObjectClass.DEBRIS,
    "DEB": ObjectClass.DEBRIS,
    "ROCKET BODY": ObjectClass.ROCKET_BODY,
    "R/B": ObjectClass.ROCKET_BODY,
    "RB": ObjectClass.ROCKET_BODY,
}


@dataclass(frozen=True)
class TrackedObject:
    """A catalogued object with its current elements.

    Attributes:
        norad_id: Catalog identifier (unique).
        name: Display name.
        tle: Current element set, or None when the object is only known
            to a non-TLE state provider.
        epoch: Epoch of the element set.
        apogee_km: Apogee altitude in km.
        perigee_km: Perigee altitude in km.
        inclination_deg: Inclination in degrees.
        object_class: Type from catalog metadata.
        rcs_size: Radar cross-section bucket (SMALL/MEDIUM/LARGE) if known.
        country: Owner country code if known.
        is_custom: True for user-defined assets.
    """

    norad_id: int
    name: str
    tle: TLE | None
    epoch: datetime | None
    apogee_km: float
    perigee_km: float
    inclination_deg: float
    object_class: ObjectClass = ObjectClass.UNKNOWN
    rcs_size: str | None = None
    country: str | None = None
    is_custom: bool = False

    @classmethod
    def from_tle(
        cls,
        tle: TLE,
        *,
        object_class: ObjectClass = ObjectClass.UNKNOWN,
        rcs_size: str | None = None,
        country: str | None = None,
        is_custom: bool = False,
    ) -> TrackedObject:
        return cls(
            norad_id=tle.norad_id,
            name=tle.name or str(tle.norad_id),
            tle=tle,
            epoch=tle.epoch,
            apogee_km=tle.apogee_km,
            perigee_km=tle.perigee_km,
            inclination_deg=tle.inclination_deg,
            object_class=object_class,
            rcs_size=rcs_size,
            country=country,
            is_custom=is_custom,
        )

    def shells_overlap(self, other: TrackedObject, tolerance_km: float = 0.0) -> bool:
        """Whether the two orbital shells can intersect.

        False when ``other`` stays entirely below this object's perigee or
        entirely above its apogee.
        """
        if other.apogee_km < self.perigee_km - tolerance_km:
            return False
        if other.perigee_km > self.apogee_km + tolerance_km:
            return False
        return True
