"""Upstream weather client (api.weather.gov and Open-Meteo).

All requests go through ``WeatherClient._fetch_json``, which consults the
TTL cache before touching the network and retries failed calls with a
linear backoff. Each upstream schema has a small adapter that turns its
JSON into ``WeatherSample`` objects.
"""

from __future__ import annotations

import asyncio
import re
import zoneinfo
from datetime import datetime
from typing import Any, Awaitable, Callable

import httpx
import structlog

from rainbow.cache import TTLCache
from rainbow.config import Settings
from rainbow.errors import ConfigError, NotFound, ParseError, UpstreamUnavailable
from rainbow.models import Coordinate, ForecastSeries, PointMetadata, WeatherSample

logger = structlog.get_logger()

# WMO weather interpretation codes
WMO_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snowfall",
    73: "Moderate snowfall",
    75: "Heavy snowfall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

OPEN_METEO_FIELDS = (
    "temperature_2m,relative_humidity_2m,weather_code,cloud_cover,"
    "precipitation_probability,wind_speed_10m,wind_direction_10m,"
    "uv_index,visibility"
)

# Keep both providers in °F / mph
_IMPERIAL_UNITS = {
    "temperature_unit": "fahrenheit",
    "wind_speed_unit": "mph",
    "precipitation_unit": "inch",
}

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def _weather_description(code: int | None) -> str:
    """Convert a WMO weather code to a human-readable description."""
    if code is None:
        return ""
    return WMO_CODES.get(code, f"Unknown ({code})")


def _quantity(value: Any) -> Any:
    """Unwrap NWS quantitative values ({"unitCode": ..., "value": x})."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def _to_float(value: Any, field: str) -> float | None:
    value = _quantity(value)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ParseError(f"Invalid {field}: {value!r}")


def _to_int(value: Any, field: str) -> int | None:
    number = _to_float(value, field)
    return None if number is None else int(number)


def parse_wind_speed(text: Any) -> float | None:
    """Parse NWS wind text ("10 mph", "5 to 10 mph") into mph.

    Ranges are averaged. Returns None when no wind is reported.
    """
    if text is None or text == "":
        return None
    if isinstance(text, (int, float)):
        return float(text)
    nums = [float(x) for x in _NUMBER_RE.findall(str(text))]
    if not nums:
        raise ParseError(f"Invalid wind speed: {text!r}")
    speed = sum(nums) / len(nums)
    if "km/h" in str(text).lower():
        speed *= 0.621371
    return speed


def cloud_from_text(short_forecast: str) -> float:
    """Estimate cloud cover % from NWS short forecast text."""
    t = (short_forecast or "").lower()
    if "mostly sunny" in t or "mostly clear" in t:
        return 20.0
    if "partly sunny" in t or "partly cloudy" in t:
        return 40.0
    if "mostly cloudy" in t:
        return 70.0
    if "sunny" in t or "clear" in t:
        return 5.0
    if "cloudy" in t or "overcast" in t:
        return 90.0
    if "rain" in t or "showers" in t or "thunder" in t:
        return 85.0
    return 50.0


def _with_utc_offset(timestamp: str, offset_seconds: Any) -> str:
    """Attach an explicit UTC offset to Open-Meteo's local timestamps."""
    if not timestamp or offset_seconds is None:
        return timestamp
    if timestamp.endswith("Z") or re.search(r"[+-]\d{2}:\d{2}$", timestamp):
        return timestamp
    try:
        total = int(offset_seconds)
    except (TypeError, ValueError):
        return timestamp
    sign = "+" if total >= 0 else "-"
    hours, rem = divmod(abs(total), 3600)
    return f"{timestamp}{sign}{hours:02d}:{rem // 60:02d}"


def _in_time_zone(timestamp: str, tz: zoneinfo.ZoneInfo | None) -> str:
    """Localize an offset-less NWS timestamp to the point's IANA zone."""
    if tz is None or not timestamp:
        return timestamp
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    if parsed.tzinfo is not None:
        return timestamp
    return parsed.replace(tzinfo=tz).isoformat()


def _load_time_zone(name: str | None) -> zoneinfo.ZoneInfo | None:
    if not name:
        return None
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_time_zone", time_zone=name)
        return None


def _dedupe(samples: list[WeatherSample]) -> ForecastSeries:
    """Drop repeated timestamps, keeping the first occurrence."""
    seen: set[str] = set()
    series: ForecastSeries = []
    for sample in samples:
        if sample.timestamp in seen:
            logger.warning("duplicate_forecast_period", timestamp=sample.timestamp)
            continue
        seen.add(sample.timestamp)
        series.append(sample)
    return series


# ---------------------------------------------------------------------------
# api.weather.gov adapters
# ---------------------------------------------------------------------------


def point_metadata_from_nws(payload: dict) -> PointMetadata:
    props = payload.get("properties") or {}
    return PointMetadata(
        grid_id=props.get("gridId") or "",
        grid_x=_to_int(props.get("gridX"), "gridX") or 0,
        grid_y=_to_int(props.get("gridY"), "gridY") or 0,
        forecast_url=props.get("forecast") or "",
        forecast_hourly_url=props.get("forecastHourly") or "",
        time_zone=props.get("timeZone"),
    )


def sample_from_nws_period(period: dict) -> WeatherSample:
    """Convert one NWS forecast period into a WeatherSample."""
    temperature = _to_float(period.get("temperature"), "temperature")
    unit = (period.get("temperatureUnit") or "F").upper()
    if temperature is not None and unit.endswith("C"):
        temperature = temperature * 9 / 5 + 32

    short_forecast = period.get("shortForecast") or ""
    cloud_cover = _to_float(period.get("skyCover"), "skyCover")
    if cloud_cover is None:
        cloud_cover = _to_float(period.get("cloudCover"), "cloudCover")
    if cloud_cover is None:
        cloud_cover = cloud_from_text(short_forecast)

    return WeatherSample(
        timestamp=period.get("startTime") or "",
        temperature=temperature,
        humidity=_to_float(period.get("relativeHumidity"), "relativeHumidity"),
        cloud_cover=cloud_cover,
        precipitation_probability=_to_float(
            period.get("probabilityOfPrecipitation"), "probabilityOfPrecipitation"
        ) or 0.0,
        wind_speed=parse_wind_speed(period.get("windSpeed")),
        wind_direction=period.get("windDirection") or None,
        condition=short_forecast,
    )


def samples_from_nws_forecast(payload: dict, time_zone: str | None = None) -> ForecastSeries:
    """Decode forecast periods; offset-less start times get ``time_zone``."""
    tz = _load_time_zone(time_zone)
    periods = (payload.get("properties") or {}).get("periods") or []
    samples = []
    for period in periods:
        try:
            sample = sample_from_nws_period(period)
        except ParseError as e:
            logger.warning(
                "forecast_period_skipped",
                start_time=period.get("startTime"),
                error=str(e),
            )
            continue
        sample.timestamp = _in_time_zone(sample.timestamp, tz)
        samples.append(sample)
    return _dedupe(samples)


# ---------------------------------------------------------------------------
# Open-Meteo adapters
# ---------------------------------------------------------------------------


def _open_meteo_sample(values: dict, timestamp: str) -> WeatherSample:
    code = _to_int(values.get("weather_code"), "weather_code")
    return WeatherSample(
        timestamp=timestamp,
        temperature=_to_float(values.get("temperature_2m"), "temperature_2m"),
        humidity=_to_float(values.get("relative_humidity_2m"), "relative_humidity_2m"),
        cloud_cover=_to_float(values.get("cloud_cover"), "cloud_cover"),
        precipitation_probability=_to_float(
            values.get("precipitation_probability"), "precipitation_probability"
        ) or 0.0,
        uv_index=_to_float(values.get("uv_index"), "uv_index"),
        visibility=_to_float(values.get("visibility"), "visibility"),
        wind_speed=_to_float(values.get("wind_speed_10m"), "wind_speed_10m"),
        wind_direction=_to_float(values.get("wind_direction_10m"), "wind_direction_10m"),
        condition=_weather_description(code),
        condition_code=code,
    )


def sample_from_open_meteo_current(payload: dict) -> WeatherSample:
    current = payload.get("current")
    if not isinstance(current, dict):
        raise ParseError("Open-Meteo response has no current block")
    if current.get("precipitation_probability") is None:
        hourly = (payload.get("hourly") or {}).get("precipitation_probability") or []
        if hourly:
            current = {**current, "precipitation_probability": hourly[0]}
    timestamp = _with_utc_offset(current.get("time") or "", payload.get("utc_offset_seconds"))
    return _open_meteo_sample(current, timestamp)


def samples_from_open_meteo_hourly(payload: dict) -> ForecastSeries:
    hourly = payload.get("hourly") or {}
    times = hourly.get("time") or []
    offset = payload.get("utc_offset_seconds")

    samples = []
    for i, raw_time in enumerate(times):
        values = {
            name: series[i]
            for name, series in hourly.items()
            if isinstance(series, list) and i < len(series)
        }
        try:
            samples.append(_open_meteo_sample(values, _with_utc_offset(raw_time, offset)))
        except ParseError as e:
            logger.warning("forecast_period_skipped", start_time=raw_time, error=str(e))
    return _dedupe(samples)


class WeatherClient:
    """Async client for the point-metadata, forecast and current endpoints."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http = http
        self.cache = cache
        self.settings = settings
        self._sleep = sleep

    async def fetch_point_metadata(self, coord: Coordinate) -> PointMetadata:
        """Resolve a coordinate to NWS grid routing info.

        Raises:
            NotFound: The provider has no coverage at these coordinates.
            UpstreamUnavailable: All retries failed.
        """
        url = f"{self.settings.nws_base_url}/points/{coord.lat:.4f},{coord.lon:.4f}"
        payload = await self._fetch_json(
            url, not_found=f"No data available for coordinates: {coord.label()}"
        )
        try:
            return point_metadata_from_nws(payload)
        except ParseError as e:
            raise UpstreamUnavailable(f"Malformed point metadata: {e}") from e

    async def fetch_forecast(self, metadata: PointMetadata) -> ForecastSeries:
        """Fetch the hourly forecast referenced by the point metadata."""
        url = metadata.forecast_hourly_url or metadata.forecast_url
        if not url:
            raise ConfigError("Forecast URL not available")
        payload = await self._fetch_json(url)
        return samples_from_nws_forecast(payload, metadata.time_zone)

    async def fetch_current(self, coord: Coordinate) -> WeatherSample:
        """Fetch a single current-conditions sample (used by the heatmap)."""
        params = {
            "latitude": round(coord.lat, 4),
            "longitude": round(coord.lon, 4),
            "current": OPEN_METEO_FIELDS,
            "timezone": "auto",
            **_IMPERIAL_UNITS,
        }
        payload = await self._fetch_json(self.settings.open_meteo_url, params=params)
        return sample_from_open_meteo_current(payload)

    async def fetch_hourly(self, coord: Coordinate, hours: int | None = None) -> ForecastSeries:
        """Fetch an hourly forecast series from Open-Meteo."""
        hours = max(1, min(hours or self.settings.forecast_hours, 384))
        params = {
            "latitude": round(coord.lat, 4),
            "longitude": round(coord.lon, 4),
            "hourly": OPEN_METEO_FIELDS,
            "forecast_hours": hours,
            "timezone": "auto",
            **_IMPERIAL_UNITS,
        }
        payload = await self._fetch_json(self.settings.open_meteo_url, params=params)
        return samples_from_open_meteo_hourly(payload)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _fetch_json(
        self, url: str, params: dict | None = None, not_found: str | None = None
    ) -> Any:
        """GET a JSON document through the cache, retrying on failure.

        Attempt ``i`` that fails sleeps ``i * retry_backoff_seconds`` before
        the next try. A 404 raises ``NotFound`` right away when ``not_found``
        is given.
        """
        request_url = str(httpx.URL(url, params=params)) if params else url

        cached = self.cache.get(request_url)
        if cached is not None:
            return cached

        max_retries = max(1, self.settings.max_retries)
        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            try:
                payload = await self._fetch_once(request_url, not_found)
            except NotFound:
                raise
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    "upstream_fetch_failed",
                    url=request_url,
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(e),
                )
                if attempt < max_retries:
                    await self._sleep(attempt * self.settings.retry_backoff_seconds)
                continue

            self.cache.set(request_url, payload)
            return payload

        logger.error("upstream_retries_exhausted", url=request_url, attempts=max_retries)
        raise UpstreamUnavailable(
            f"Max retries reached ({max_retries}) for {request_url}: {last_error}",
            attempts=max_retries,
            last_error=last_error,
        ) from last_error

    async def _fetch_once(self, url: str, not_found: str | None) -> Any:
        logger.info("upstream_fetch", url=url)
        resp = await self.http.get(
            url,
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept": "application/geo+json, application/json",
            },
        )
        if resp.status_code == 404 and not_found:
            logger.warning("upstream_not_found", url=url)
            raise NotFound(not_found)
        resp.raise_for_status()
        return resp.json()
