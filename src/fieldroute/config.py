"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "FieldRoute Optimization API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logger level for the API and worker.")

    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_timeout_seconds: float = Field(default=30.0, gt=0.0)
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_max_coordinates_per_request: int = Field(default=80, ge=2)

    provider_max_concurrency: int = Field(
        default=8,
        ge=1,
        description="Upper bound on outstanding travel-time provider requests per process.",
    )
    provider_fallback_to_haversine: bool = Field(
        default=False,
        description="Use great-circle estimates when the provider exhausts its retry budget.",
    )
    haversine_speed_kmh: float = Field(default=40.0, gt=0.0)

    default_start_time: str = Field(default="08:00", pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
    work_end_time: str = Field(default="17:30", pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$")

    lunch_break_enabled: bool = Field(
        default=True,
        description="Schedule one fixed lunch break per route.",
    )
    lunch_start_time: str = Field(default="12:00", pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
    lunch_duration_minutes: int = Field(default=60, ge=0)
    lunch_min_work_before_minutes: int = Field(
        default=15,
        ge=0,
        description="Shorter slots before lunch are not split; the job starts after lunch instead.",
    )

    max_stops_per_request: int = Field(default=100, ge=1)
    min_per_route: int = Field(default=1, ge=1)
    max_per_route: int = Field(default=50, ge=1)

    optimizer_strategy: Literal["greedy", "ortools"] = Field(
        default="greedy",
        description="Sequencing engine: nearest-neighbour + 2-opt, or the OR-Tools VRP solver.",
    )
    optimizer_two_opt: bool = True
    balance_target_cv: float = Field(
        default=20.0,
        ge=0.0,
        description="Coefficient of variation (percent) at which workload balancing stops.",
    )
    solver_first_solution_strategy: str = Field(default="PATH_CHEAPEST_ARC")
    solver_local_search_metaheuristic: str = Field(default="GUIDED_LOCAL_SEARCH")
    solver_time_limit_seconds: int = Field(default=10, ge=1)

    sync_optimize_timeout_seconds: float = Field(default=60.0, gt=0.0)
    sync_optimize_max_workers: int = Field(
        default=4,
        ge=1,
        description="Threads serving synchronous optimize calls, including abandoned timed-out runs.",
    )

    job_autostart: bool = Field(
        default=True,
        description="Run queued jobs in-process as FastAPI background tasks.",
    )
    job_stale_after_seconds: int = Field(default=900, ge=1)
    worker_poll_interval_seconds: float = Field(default=5.0, gt=0.0)
    worker_batch_size: int = Field(default=5, ge=1)

    min_estimated_minutes: int = 1
    max_estimated_minutes: int = 480
    bulk_upsert_limit: int = Field(default=100, ge=1)

    unlocated_stop_travel_minutes: float = Field(default=15.0, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        return str(value or "INFO").strip().upper()


settings = Settings()
