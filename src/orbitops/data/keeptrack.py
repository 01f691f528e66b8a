"""KeepTrack API client.

Fetches the public satellite catalog and the latest SOCRATES conjunction
feed. Neither endpoint needs authentication.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

from orbitops.core.events import ConjunctionEvent, Provenance, as_utc
from orbitops.core.objects import ObjectClass, TrackedObject
from orbitops.core.tle import TLE
from orbitops.utils.constants import RELATIVE_SPEED_EPSILON_KM_S

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.keeptrack.space/v2"


def _parse_toca(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def parse_catalog_records(records: Iterable[Mapping[str, Any]]) -> list[TrackedObject]:
    """Convert catalog records to tracked objects, skipping unusable element sets."""
    objects: list[TrackedObject] = []
    skipped = 0
    for record in records:
        try:
            tle = TLE.from_lines(record["tle1"], record["tle2"], name=(record.get("name") or "").strip())
        except (KeyError, TypeError, ValueError) as e:
            skipped += 1
            logger.debug("Skipping catalog record %r: %s", record.get("name"), e)
            continue
        object_type = record.get("type", record.get("object_type"))
        objects.append(
            TrackedObject.from_tle(
                tle,
                object_class=ObjectClass.from_catalog(str(object_type) if object_type is not None else None),
                rcs_size=record.get("rcs"),
                country=record.get("country"),
            )
        )
    if skipped:
        logger.warning("Skipped %d catalog records with invalid elements", skipped)
    return objects


def parse_feed_records(
    records: Iterable[Mapping[str, Any]],
    relative_speed_epsilon_km_s: float = RELATIVE_SPEED_EPSILON_KM_S,
) -> list[ConjunctionEvent]:
    """Convert SOCRATES records to external conjunction events.

    Records with missing fields, unparseable values, or the same object on
    both sides are skipped, as are degenerate pairs whose relative speed is
    below ``relative_speed_epsilon_km_s``.
    """
    events: list[ConjunctionEvent] = []
    skipped = degenerate = 0
    for record in records:
        try:
            primary = int(record["SAT1"])
            secondary = int(record["SAT2"])
            if primary == secondary:
                raise ValueError("object conjuncts with itself")
            event = ConjunctionEvent(
                primary_norad_id=primary,
                secondary_norad_id=secondary,
                tca=_parse_toca(record["TOCA"]),
                miss_distance_km=float(record["MIN_RNG"]),
                relative_speed_km_s=float(record["REL_SPEED"]),
                primary_name=str(record.get("SAT1_NAME") or "").strip(),
                secondary_name=str(record.get("SAT2_NAME") or "").strip(),
                probability=_optional_float(record.get("MAX_PROB")),
                provenance=Provenance.EXTERNAL,
            )
        except (KeyError, TypeError, ValueError) as e:
            skipped += 1
            logger.debug("Skipping feed record %r: %s", record, e)
            continue
        if event.relative_speed_km_s < relative_speed_epsilon_km_s:
            degenerate += 1
            logger.debug("Skipping degenerate feed record %s: relative speed %.2e km/s", event.key, event.relative_speed_km_s)
            continue
        events.append(event)
    if skipped or degenerate:
        logger.warning(
            "Skipped %d malformed and %d degenerate conjunction feed records", skipped, degenerate,
        )
    return events


@dataclass
class KeepTrackClient:
    """Client for the KeepTrack REST API.

    Attributes:
        base_url: API root, e.g. ``https://api.keeptrack.space/v2``.
        timeout_s: Per-request timeout in seconds.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 30.0
    _session: requests.Session = field(default_factory=requests.Session, repr=False)

    def _request(self, path: str) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            requests.HTTPError: If the request fails.
        """
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        response = self._session.get(url, timeout=self.timeout_s)
        response.raise_for_status()
        return response.json()

    def fetch_catalog(self) -> list[TrackedObject]:
        """Fetch the full satellite catalog.

        Raises:
            requests.HTTPError: If the request fails.
        """
        records = self._request("sats")
        if not isinstance(records, list):
            logger.warning("Catalog response is not a list; ignoring it")
            return []
        objects = parse_catalog_records(records)
        logger.info("Fetched %d catalog objects (%d records)", len(objects), len(records))
        return objects

    def fetch_conjunctions(self) -> list[ConjunctionEvent]:
        """Fetch the latest SOCRATES conjunction feed.

        Raises:
            requests.HTTPError: If the request fails.
        """
        records = self._request("socrates/latest")
        if not isinstance(records, list):
            logger.warning("Conjunction feed response is not a list; ignoring it")
            return []
        events = parse_feed_records(records)
        logger.info("Fetched %d external conjunction events", len(events))
        return events

    def close(self) -> None:
        self._session.close()
