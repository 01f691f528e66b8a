"""Runtime configuration, read from ``ORBITOPS_*`` environment variables or ``.env``."""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from orbitops.core.maneuver import ManeuverConfig
from orbitops.core.risk import RiskCriteria
from orbitops.core.screening import ScreeningWindow
from orbitops.utils import constants as c


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ORBITOPS_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///orbitops.db"

    keeptrack_base_url: str = "https://api.keeptrack.space/v2"
    http_timeout_s: float = 30.0

    # Screening
    screening_window_hours: float = c.DEFAULT_SCREENING_WINDOW_HOURS
    screening_step_s: float = c.DEFAULT_SCREENING_STEP_S
    miss_distance_threshold_km: float = c.DEFAULT_MISS_DISTANCE_KM
    shell_tolerance_km: float = 0.0
    relative_speed_epsilon_km_s: float = c.RELATIVE_SPEED_EPSILON_KM_S
    screening_workers: int = 4
    screening_budget_s: float | None = None

    # Maneuver planning
    safe_miss_distance_km: float = c.DEFAULT_SAFE_MISS_DISTANCE_KM
    burn_lead_time_minutes: float = c.DEFAULT_BURN_LEAD_TIME_MIN
    delta_v_seed_mps: float = c.DEFAULT_DELTA_V_SEED_MPS
    max_delta_v_mps: float = c.MAX_DELTA_V_MPS
    bisection_iterations: int = c.DEFAULT_BISECTION_ITERATIONS
    separation_tolerance_km: float = c.DEFAULT_SEPARATION_TOLERANCE_KM
    planning_budget_s: float | None = None

    # Risk classification
    risk_safety_floor_km: float = c.DEFAULT_SAFETY_FLOOR_KM
    probability_threshold: float = c.DEFAULT_PC_THRESHOLD
    planning_horizon_hours: float = c.DEFAULT_PLANNING_HORIZON_HOURS

    def screening_window(
        self,
        start_time: datetime | None = None,
        hours: float | None = None,
        step_seconds: float | None = None,
        threshold_km: float | None = None,
    ) -> ScreeningWindow:
        return ScreeningWindow.starting_now(
            hours=hours if hours is not None else self.screening_window_hours,
            step_seconds=step_seconds if step_seconds is not None else self.screening_step_s,
            threshold_km=threshold_km if threshold_km is not None else self.miss_distance_threshold_km,
            now=start_time,
        )

    def maneuver_config(self) -> ManeuverConfig:
        return ManeuverConfig(
            safe_miss_distance_km=self.safe_miss_distance_km,
            burn_lead_time_minutes=self.burn_lead_time_minutes,
            delta_v_seed_mps=self.delta_v_seed_mps,
            max_delta_v_mps=self.max_delta_v_mps,
            bisection_iterations=self.bisection_iterations,
            separation_tolerance_km=self.separation_tolerance_km,
        )

    def risk_criteria(self) -> RiskCriteria:
        return RiskCriteria(
            safety_floor_km=self.risk_safety_floor_km,
            probability_threshold=self.probability_threshold,
            planning_horizon_hours=self.planning_horizon_hours,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
