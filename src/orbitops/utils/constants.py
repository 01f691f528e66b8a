from __future__ import annotations

"""Physical constants and default thresholds for screening and maneuver planning.

Distances in km, speeds in km/s unless the name says otherwise.
"""

# --- Earth parameters (WGS-84) ---
EARTH_RADIUS_KM: float = 6378.137
"""Equatorial radius of Earth in km."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

SECONDS_PER_DAY: float = 86400.0

# --- Default screening parameters ---
DEFAULT_SCREENING_WINDOW_HOURS: float = 24.0
"""Forward screening window in hours."""

DEFAULT_SCREENING_STEP_S: float = 120.0
"""Sampling cadence of the closest-approach search in seconds."""

DEFAULT_MISS_DISTANCE_KM: float = 5.0
"""Miss distance below which a close approach is emitted as an event."""

RELATIVE_SPEED_EPSILON_KM_S: float = 1e-4
"""Relative speeds below this mark a pair as the same physical object."""

# --- Default risk classification ---
DEFAULT_SAFETY_FLOOR_KM: float = 5.0
"""Miss distance below which an event is high-risk."""

DEFAULT_PC_THRESHOLD: float = 1e-4
"""Collision probability at/above which an event is high-risk."""

DEFAULT_PLANNING_HORIZON_HOURS: float = 50.0
"""How far ahead a TCA may lie and still be urgent."""

# --- Default maneuver planning ---
DEFAULT_SAFE_MISS_DISTANCE_KM: float = 10.0
"""Target separation at TCA after the avoidance burn."""

DEFAULT_BURN_LEAD_TIME_MIN: float = -30.0
"""Burn time relative to TCA in minutes (negative: before TCA)."""

DEFAULT_DELTA_V_SEED_MPS: float = 0.01
"""Initial upper bracket of the burn search in m/s."""

MAX_DELTA_V_MPS: float = 10.0
"""Largest burn the linear separation model is trusted for, in m/s."""

MAX_BURN_LEAD_TIME_MIN: float = 360.0
"""Longest burn lead time the linear separation model is trusted for."""

DEFAULT_BISECTION_ITERATIONS: int = 40

DEFAULT_SEPARATION_TOLERANCE_KM: float = 1e-3
"""Acceptable distance between achieved and target separation."""

ZERO_DELTA_V_MPS: float = 1e-6
"""Burns at or below this magnitude are reported as 'no maneuver needed'."""
