"""Error taxonomy for screening, cataloguing and maneuver planning."""

from __future__ import annotations


class OrbitOpsError(Exception):
    """Base class for all orbitops errors."""


class PropagationUnavailable(OrbitOpsError):
    """A single state evaluation failed.

    Always recoverable: the caller skips the sample, candidate or event.
    """

    def __init__(self, norad_id: int | None, message: str) -> None:
        self.norad_id = norad_id
        super().__init__(message)


class InvalidStateVector(OrbitOpsError, ValueError):
    """Degenerate input to the orbital element converter."""


class DuplicateOrbitDetected(OrbitOpsError):
    """Two catalog entries share an orbit (near-zero relative speed)."""

    def __init__(self, primary_id: int, secondary_id: int, relative_speed_km_s: float) -> None:
        self.primary_id = primary_id
        self.secondary_id = secondary_id
        self.relative_speed_km_s = relative_speed_km_s
        super().__init__(
            f"NORAD {secondary_id} duplicates the orbit of NORAD {primary_id} "
            f"(relative speed {relative_speed_km_s:.2e} km/s)"
        )


class BudgetExceeded(OrbitOpsError):
    """The wall-clock budget of a screening pass or planning run ran out."""


class CatalogUnavailable(OrbitOpsError):
    """The conjunction/object store could not be reached.

    Fatal to a batch run.
    """


class ObjectNotFound(OrbitOpsError, LookupError):
    """No tracked object with the requested catalog id."""

    def __init__(self, norad_id: int) -> None:
        self.norad_id = norad_id
        super().__init__(f"Object NORAD {norad_id} not found in catalog")
