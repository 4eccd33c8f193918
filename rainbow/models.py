"""Domain types and Pydantic response schemas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel


@dataclass(frozen=True)
class Coordinate:
    """A point in decimal degrees."""

    lat: float
    lon: float

    def label(self) -> str:
        return f"{self.lat:.4f}, {self.lon:.4f}"


@dataclass
class PointMetadata:
    """Provider routing info for a coordinate (api.weather.gov /points)."""

    grid_id: str
    grid_x: int
    grid_y: int
    forecast_url: str = ""
    forecast_hourly_url: str = ""
    time_zone: str | None = None


@dataclass
class WeatherSample:
    """One weather observation or forecast period.

    Temperatures are in °F and wind speeds in mph regardless of the
    upstream schema. ``timestamp`` is kept as the raw ISO-8601 string;
    consumers parse it so a bad value only drops that one sample.
    """

    timestamp: str
    temperature: float | None = None
    humidity: float | None = None
    cloud_cover: float | None = None
    precipitation_probability: float = 0.0
    uv_index: float | None = None
    visibility: float | None = None
    wind_speed: float | None = None
    wind_direction: str | float | None = None  # compass text or degrees
    condition: str = ""
    condition_code: int | None = None


# Chronological, unique timestamps
ForecastSeries = list[WeatherSample]


@dataclass
class Prediction:
    location: str
    time: datetime | None
    likelihood: float


@dataclass
class HeatmapPoint:
    lat: float
    lon: float
    likelihood: float


class PredictionResponse(BaseModel):
    likelihood: float
    location: str
    time: datetime | None = None


class HeatmapPointResponse(BaseModel):
    lat: float
    lon: float
    likelihood: float


class HealthResponse(BaseModel):
    """Standard health check response."""

    status: str = "ok"
