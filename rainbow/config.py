"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream providers
    nws_base_url: str = "https://api.weather.gov"
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    # api.weather.gov rejects requests without a User-Agent
    user_agent: str = "RainbowPredictionApp/1.0"
    http_timeout_seconds: float = 10.0

    # Retry / cache
    max_retries: int = 3
    # Attempt i sleeps i * retry_backoff_seconds before the next try
    retry_backoff_seconds: float = 1.0
    cache_ttl_seconds: int = 900

    # Which schema variant feeds /predict
    forecast_provider: Literal["nws", "open_meteo"] = "nws"
    forecast_hours: int = 48

    # Scoring
    scoring_policy: Literal["sun_angle", "text_compass", "condition_code"] = "sun_angle"
    heatmap_scoring_policy: Literal["sun_angle", "text_compass", "condition_code"] = "condition_code"
    sun_model: Literal["solar", "clock"] = "solar"
    cloud_cover_ceiling: float = 96.0

    # Deployment region (defaults to Colorado)
    restrict_to_region: bool = True
    region_min_lat: float = 37.0
    region_max_lat: float = 41.0
    region_min_lon: float = -109.0
    region_max_lon: float = -102.0

    # Heatmap
    heatmap_default_resolution: float = 0.05
    heatmap_max_points: int = 2500
    heatmap_concurrency: int = 8
    heatmap_deadline_seconds: float = 20.0

    predict_deadline_seconds: float = 30.0

    # Status returned for coordinates outside upstream coverage (404 or 500)
    not_found_status: int = 404

    model_config = SettingsConfigDict(env_prefix="RAINBOW_", env_file=".env", extra="ignore")

    @property
    def region_bounds(self) -> tuple[float, float, float, float] | None:
        """Return (min_lat, max_lat, min_lon, max_lon), or None when unrestricted."""
        if not self.restrict_to_region:
            return None
        return (
            self.region_min_lat,
            self.region_max_lat,
            self.region_min_lon,
            self.region_max_lon,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
