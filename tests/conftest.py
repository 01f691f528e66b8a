"""Shared fixtures."""
from __future__ import annotations

import pytest

from orbitops.catalog.store import CatalogStore
from orbitops.core.objects import ObjectClass, TrackedObject
from orbitops.core.tle import TLE
from tests.orbits import (
    CSS_LINE1,
    CSS_LINE2,
    GEO_LINE1,
    GEO_LINE2,
    ISS_LINE1,
    ISS_LINE2,
    ISS_NAME,
    CrossingOrbitsProvider,
    circular_object,
)


@pytest.fixture
def iss_tle() -> TLE:
    return TLE.from_lines(ISS_LINE1, ISS_LINE2, name=ISS_NAME)


@pytest.fixture
def css_tle() -> TLE:
    return TLE.from_lines(CSS_LINE1, CSS_LINE2, name="CSS (TIANHE)")


@pytest.fixture
def geo_tle() -> TLE:
    return TLE.from_lines(GEO_LINE1, GEO_LINE2, name="SES-1")


@pytest.fixture
def iss(iss_tle: TLE) -> TrackedObject:
    return TrackedObject.from_tle(iss_tle, object_class=ObjectClass.PAYLOAD)


@pytest.fixture
def store(tmp_path):
    store = CatalogStore(f"sqlite:///{tmp_path / 'catalog.db'}")
    store.open()
    yield store
    store.close()


@pytest.fixture
def crossing() -> CrossingOrbitsProvider:
    """1.25 km miss between NORAD 1 (equatorial) and NORAD 2 (polar) at TCA."""
    return CrossingOrbitsProvider(1, 2, miss_km=1.25)


@pytest.fixture
def primary() -> TrackedObject:
    return circular_object(1, "PRIMARY")


@pytest.fixture
def secondary() -> TrackedObject:
    return circular_object(2, "SECONDARY", object_class=ObjectClass.DEBRIS)
