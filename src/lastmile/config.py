"""Application configuration and settings management."""

from typing import Annotated, Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LASTMILE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Last-Mile Tracking API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")

    # Routing engine (OSRM route endpoint), tried in order
    routing_endpoints: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "https://routing.openstreetmap.de/routed-car",
            "https://router.project-osrm.org",
        ),
        description="OSRM base URLs, primary first. Order is fixed, never load-balanced.",
    )
    routing_profile: Literal["driving", "driving-hgv"] = Field(default="driving")
    routing_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # Geocoding (Nominatim)
    geocoder_base_url: str = Field(default="https://nominatim.openstreetmap.org")
    geocoder_user_agent: str = Field(
        default="LastMileTracker/1.0",
        description="Nominatim rejects requests without an identifying User-Agent.",
    )
    geocoder_timeout_seconds: float = Field(default=8.0, gt=0.0)
    geocoder_country: str = Field(default="India")
    geocoder_country_code: str = Field(default="in")

    # Telemetry
    telemetry_interval_seconds: float = Field(default=10.0, gt=0.0)
    fast_tier_timeout_seconds: float = Field(default=30.0, gt=0.0)
    fast_tier_max_age_seconds: float = Field(default=120.0, ge=0.0)
    slow_tier_timeout_seconds: float = Field(default=60.0, gt=0.0)
    slow_tier_max_age_seconds: float = Field(default=300.0, ge=0.0)
    stale_sample_max_age_seconds: float = Field(
        default=120.0,
        ge=0.0,
        description="A cached sample younger than this is returned when the fast tier fails.",
    )
    backend_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the tracking backend (e.g., http://localhost:8000/api).",
    )
    publish_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # Hub used to anchor synthetic stop placement when nothing better is known
    default_hub_latitude: float = Field(default=13.0827, ge=-90.0, le=90.0)
    default_hub_longitude: float = Field(default=80.2707, ge=-180.0, le=180.0)

    frontend_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("routing_endpoints", "frontend_allowed_origins", mode="before")
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

    @field_validator("routing_endpoints", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(endpoint.rstrip("/") for endpoint in value)


settings = Settings()
