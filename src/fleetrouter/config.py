"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FLEET_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "FleetRouter API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    data_root: Path = Field(default=Path("data"), description="Root directory for run outputs.")

    osrm_base_url: Optional[str] = Field(
        default="https://router.project-osrm.org",
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_timeout_seconds: float = Field(default=30.0, gt=0.0)

    nominatim_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL for the Nominatim geocoding service.",
    )
    geocode_user_agent: str = "FleetRouter/1.0"
    geocode_max_attempts: int = Field(default=3, ge=1)
    geocode_backoff_seconds: float = Field(default=0.5, ge=0.0)
    geocode_request_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between sequential geocoding requests (Nominatim usage policy).",
    )
    geocode_fallback_latitude: float = Field(default=17.385, ge=-90.0, le=90.0)
    geocode_fallback_longitude: float = Field(default=78.486, ge=-180.0, le=180.0)
    geocode_fallback_jitter: float = Field(default=0.05, ge=0.0)

    max_per_vehicle: int = Field(default=4, ge=1, description="Seats available to riders per vehicle.")
    exhaustive_search_limit: int = Field(
        default=8,
        ge=0,
        description="Largest stop count sequenced by exhaustive permutation search.",
    )
    clustering_max_iterations: int = Field(default=100, ge=1)
    clustering_tolerance: float = Field(default=1e-4, gt=0.0)
    clustering_seed: Optional[int] = Field(
        default=None,
        description="Seed for centroid sampling. Leave unset for run-to-run variation.",
    )
    fallback_speed_kmh: float = Field(
        default=40.0,
        gt=0.0,
        description="Average speed used for haversine travel-time estimates.",
    )

    ready_buffer_minutes: int = Field(default=5, ge=0)
    default_rest_minutes: int = Field(default=15, ge=0)
    assignment_queue_size: int = Field(default=256, ge=1)
    assignment_timeout_seconds: float = Field(default=30.0, gt=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

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


settings = Settings()
