"""Request-level orchestration for predictions and heatmaps."""

from __future__ import annotations

import asyncio
import math

import structlog

from rainbow.client import WeatherClient
from rainbow.config import Settings
from rainbow.errors import UpstreamUnavailable, ValidationError
from rainbow.heatmap import (
    generate_heatmap,
    lattice_size,
    normalize_resolution,
    radius_to_degrees,
)
from rainbow.models import Coordinate, ForecastSeries, HeatmapPoint, Prediction
from rainbow.predictor import predict_best_period
from rainbow.scoring import build_policy

logger = structlog.get_logger()


def parse_float(value: str | float | None, name: str) -> float:
    """Parse a required finite number from a query parameter."""
    if value is None or str(value).strip() == "":
        raise ValidationError(f"Missing {name}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}")
    if not math.isfinite(number):
        raise ValidationError(f"Invalid {name}")
    return number


def parse_optional_float(value: str | float | None) -> float | None:
    """Parse an optional number; anything unusable becomes None."""
    try:
        return parse_float(value, "value")
    except ValidationError:
        return None


def parse_coordinate(
    lat: str | float | None,
    lon: str | float | None,
    region: tuple[float, float, float, float] | None = None,
) -> Coordinate:
    """Validate a coordinate, optionally against a (min_lat, max_lat, min_lon, max_lon) box."""
    lat_value = parse_float(lat, "latitude")
    lon_value = parse_float(lon, "longitude")

    if not -90 <= lat_value <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= lon_value <= 180:
        raise ValidationError("Longitude must be between -180 and 180")

    if region is not None:
        min_lat, max_lat, min_lon, max_lon = region
        if not (min_lat <= lat_value <= max_lat and min_lon <= lon_value <= max_lon):
            raise ValidationError("Coordinates are outside of the supported region")

    return Coordinate(lat_value, lon_value)


class RainbowService:
    """Prediction and heatmap operations over a shared weather client."""

    def __init__(self, client: WeatherClient, settings: Settings):
        self.client = client
        self.settings = settings
        self.policy = build_policy(
            settings.scoring_policy, settings.sun_model, settings.cloud_cover_ceiling
        )
        self.heatmap_policy = build_policy(
            settings.heatmap_scoring_policy, settings.sun_model, settings.cloud_cover_ceiling
        )

    async def predict(self, lat: str | float | None, lon: str | float | None) -> Prediction:
        """Best rainbow period in the upcoming forecast for a point."""
        coord = parse_coordinate(lat, lon, self.settings.region_bounds)

        try:
            series = await asyncio.wait_for(
                self._fetch_series(coord),
                timeout=self.settings.predict_deadline_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("predict_deadline_exceeded", lat=coord.lat, lon=coord.lon)
            raise UpstreamUnavailable("Timed out fetching forecast") from e

        prediction = predict_best_period(series, coord, self.policy)
        logger.info(
            "prediction_ready",
            location=prediction.location,
            periods=len(series),
            likelihood=prediction.likelihood,
            time=prediction.time.isoformat() if prediction.time else None,
        )
        return prediction

    async def heatmap(
        self,
        lat: str | float | None,
        lon: str | float | None,
        radius: str | float | None,
        resolution: str | float | None = None,
    ) -> list[HeatmapPoint]:
        """Likelihood grid within ``radius`` miles of a point."""
        center = parse_coordinate(lat, lon, self.settings.region_bounds)

        radius_value = parse_float(radius, "radius")
        if radius_value < 0:
            raise ValidationError("Radius must not be negative")

        step = normalize_resolution(
            parse_optional_float(resolution), self.settings.heatmap_default_resolution
        )
        size = lattice_size(radius_to_degrees(radius_value), step)
        if size > self.settings.heatmap_max_points:
            raise ValidationError(
                f"Grid too large ({size} points); increase resolution or reduce radius"
            )

        return await generate_heatmap(
            center,
            radius_value,
            step,
            self.client.fetch_current,
            self.heatmap_policy,
            concurrency=self.settings.heatmap_concurrency,
            deadline=self.settings.heatmap_deadline_seconds,
        )

    async def _fetch_series(self, coord: Coordinate) -> ForecastSeries:
        if self.settings.forecast_provider == "open_meteo":
            return await self.client.fetch_hourly(coord)
        metadata = await self.client.fetch_point_metadata(coord)
        return await self.client.fetch_forecast(metadata)
