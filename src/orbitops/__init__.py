"""
OrbitOps — conjunction screening and collision-avoidance planning for Python.

Screens tracked objects against a catalog for close approaches, keeps a
keyed conjunction catalog, and sizes minimal along-track burns for
high-risk, urgent events.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from orbitops.core.tle import TLE, parse_tle
from orbitops.core.objects import ObjectClass, TrackedObject
from orbitops.core.propagation import OrbitStateProvider, Sgp4StateProvider, StateVector
from orbitops.core.elements import OrbitalElements, elements_from_state
from orbitops.core.events import ConjunctionEvent, ManeuverSolution, PlanStatus, Provenance
from orbitops.core.screening import ScreeningReport, ScreeningWindow, screen
from orbitops.core.risk import RiskCriteria, classify
from orbitops.core.maneuver import ManeuverConfig, plan
from orbitops.catalog.store import CatalogStore
from orbitops.catalog.conjunctions import ConjunctionCatalog
from orbitops.catalog.objects import ObjectCatalog
from orbitops.data.keeptrack import KeepTrackClient

__all__ = [
    "__version__",
    "TLE",
    "parse_tle",
    "ObjectClass",
    "TrackedObject",
    "OrbitStateProvider",
    "Sgp4StateProvider",
    "StateVector",
    "OrbitalElements",
    "elements_from_state",
    "ConjunctionEvent",
    "ManeuverSolution",
    "PlanStatus",
    "Provenance",
    "ScreeningReport",
    "ScreeningWindow",
    "screen",
    "RiskCriteria",
    "classify",
    "ManeuverConfig",
    "plan",
    "CatalogStore",
    "ConjunctionCatalog",
    "ObjectCatalog",
    "KeepTrackClient",
]
