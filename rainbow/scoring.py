"""Rainbow likelihood scoring.

A score is built from a weather sample, the place it applies to and the
moment it describes. Two pieces are pluggable:

- ``SunModel`` estimates solar elevation. Neither model aims to be
  astronomically exact; they only gate and weight the score.
- ``ScoringPolicy`` turns a sample into a raw score. Every policy shares
  the same eligibility gate (cloud ceiling, sun band, liquid
  precipitation) and then applies its own factors.

Raw scores can exceed 1; callers clamp with ``clamp_likelihood``.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from rainbow.models import Coordinate, WeatherSample

# Rainbows are only visible with the sun between the horizon and 42°
MIN_SUN_ANGLE = 0.0
MAX_SUN_ANGLE = 42.0
OPTIMAL_SUN_ANGLE = 21.0

FREEZING_F = 32.0
DEFAULT_CLOUD_CEILING = 96.0

EVENING_HOURS = range(16, 22)
EVENING_BONUS = 1.5
WARM_MONTHS = range(4, 10)
SEASON_BONUS = 1.2

OPTIMAL_WIND_MPH = 10.0
WIND_BAND_MPH = 10.0

EASTERLY = frozenset({"E", "NE", "SE", "ENE", "ESE"})
EAST_RAIN_BONUS = 1.5

_COMPASS_8 = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")

# WMO codes for liquid precipitation and a rough intensity for each
LIQUID_CODE_INTENSITY: dict[int, float] = {
    51: 0.3, 53: 0.4, 55: 0.5,          # drizzle
    61: 0.5, 63: 0.7, 65: 0.6,          # rain
    80: 0.8, 81: 0.9, 82: 0.7,          # showers
    95: 0.6, 96: 0.4, 99: 0.3,          # thunderstorm
}
FROZEN_CODES = frozenset({56, 57, 66, 67, 71, 73, 75, 77, 85, 86})


def clamp_likelihood(value: float) -> float:
    """Clamp a raw score into [0, 1]; NaN becomes 0."""
    if value != value:
        return 0.0
    return max(0.0, min(1.0, value))


def sun_angle_factor(elevation: float) -> float:
    """Triangular weight peaking at 21°, zero at 0° and 42°."""
    half_band = OPTIMAL_SUN_ANGLE - MIN_SUN_ANGLE
    return max(0.0, 1.0 - abs(elevation - OPTIMAL_SUN_ANGLE) / half_band)


def wind_factor(speed: float | None) -> float:
    """Triangular weight peaking at a moderate breeze. Unknown wind is neutral."""
    if speed is None:
        return 1.0
    return max(0.0, 1.0 - abs(speed - OPTIMAL_WIND_MPH) / WIND_BAND_MPH)


def compass_direction(degrees: float) -> str:
    """Map a bearing in degrees to an 8-point compass label."""
    return _COMPASS_8[int(((degrees % 360) + 22.5) // 45) % 8]


def is_easterly(direction: str | float | None) -> bool:
    if direction is None:
        return False
    if isinstance(direction, (int, float)):
        direction = compass_direction(direction)
    return direction.strip().upper() in EASTERLY


def mentions_rain(condition: str) -> bool:
    text = (condition or "").lower()
    return "rain" in text or "shower" in text


def is_freezing(temperature: float | None) -> bool:
    return temperature is not None and temperature <= FREEZING_F


# ---------------------------------------------------------------------------
# Sun models
# ---------------------------------------------------------------------------


class SunModel(ABC):
    """Strategy for estimating solar elevation in degrees."""

    name: str = ""

    @abstractmethod
    def elevation(self, when: datetime, location: Coordinate) -> float:
        ...


class SolarSunModel(SunModel):
    """Declination and hour-angle approximation (NOAA general solar position).

    Naive timestamps are taken as UTC.
    """

    name = "solar"

    def elevation(self, when: datetime, location: Coordinate) -> float:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        utc = when.astimezone(timezone.utc)
        hours = utc.hour + utc.minute / 60 + utc.second / 3600
        day_of_year = utc.timetuple().tm_yday

        # Fractional year in radians
        g = 2 * math.pi / 365 * (day_of_year - 1 + (hours - 12) / 24)
        declination = (
            0.006918
            - 0.399912 * math.cos(g)
            + 0.070257 * math.sin(g)
            - 0.006758 * math.cos(2 * g)
            + 0.000907 * math.sin(2 * g)
            - 0.002697 * math.cos(3 * g)
            + 0.00148 * math.sin(3 * g)
        )
        eq_time = 229.18 * (
            0.000075
            + 0.001868 * math.cos(g)
            - 0.032077 * math.sin(g)
            - 0.014615 * math.cos(2 * g)
            - 0.040849 * math.sin(2 * g)
        )

        solar_minutes = hours * 60 + eq_time + 4 * location.lon
        hour_angle = math.radians(solar_minutes / 4 - 180)
        lat = math.radians(location.lat)

        sin_elev = (
            math.sin(lat) * math.sin(declination)
            + math.cos(lat) * math.cos(declination) * math.cos(hour_angle)
        )
        return math.degrees(math.asin(max(-1.0, min(1.0, sin_elev))))


class ClockSunModel(SunModel):
    """Hour-of-day placeholder: 90° at local noon, 15° lower per hour away.

    Ignores date and location entirely.
    """

    name = "clock"

    def elevation(self, when: datetime, location: Coordinate) -> float:
        hour = when.hour + when.minute / 60
        return 90 - abs(hour - 12) * 15


SUN_MODELS: dict[str, type[SunModel]] = {
    SolarSunModel.name: SolarSunModel,
    ClockSunModel.name: ClockSunModel,
}


# ---------------------------------------------------------------------------
# Scoring policies
# ---------------------------------------------------------------------------


class ScoringPolicy(ABC):
    """Maps (sample, location, time) to a raw likelihood score."""

    name: str = ""

    def __init__(
        self,
        sun_model: SunModel | None = None,
        cloud_cover_ceiling: float = DEFAULT_CLOUD_CEILING,
    ):
        self.sun_model = sun_model or SolarSunModel()
        self.cloud_cover_ceiling = cloud_cover_ceiling

    def score(self, sample: WeatherSample, location: Coordinate, when: datetime) -> float:
        """Score a sample; ineligible samples short-circuit to 0."""
        cloud_cover = sample.cloud_cover or 0.0
        if cloud_cover > self.cloud_cover_ceiling:
            return 0.0

        elevation = self.sun_model.elevation(when, location)
        if not MIN_SUN_ANGLE <= elevation <= MAX_SUN_ANGLE:
            return 0.0

        if not self.has_liquid_precipitation(sample):
            return 0.0

        return self._score(sample, cloud_cover, elevation, when)

    def has_liquid_precipitation(self, sample: WeatherSample) -> bool:
        return sample.precipitation_probability > 0 and not is_freezing(sample.temperature)

    @abstractmethod
    def _score(
        self, sample: WeatherSample, cloud_cover: float, elevation: float, when: datetime
    ) -> float:
        ...


class SunAnglePolicy(ScoringPolicy):
    """Multiplicative heuristic weighted by sun angle, time of day and season."""

    name = "sun_angle"

    def precipitation_factor(self, sample: WeatherSample) -> float:
        return sample.precipitation_probability / 100

    def _score(self, sample, cloud_cover, elevation, when):
        likelihood = (100 - cloud_cover) / 100
        likelihood *= self.precipitation_factor(sample)
        likelihood *= sun_angle_factor(elevation)

        if when.hour in EVENING_HOURS:
            likelihood *= EVENING_BONUS
        if when.month in WARM_MONTHS:
            likelihood *= SEASON_BONUS

        likelihood *= wind_factor(sample.wind_speed)

        if mentions_rain(sample.condition) and is_easterly(sample.wind_direction):
            likelihood *= EAST_RAIN_BONUS

        return likelihood


class ConditionCodePolicy(SunAnglePolicy):
    """Sun-angle heuristic for WMO-coded samples.

    Single current-conditions samples often lack a precipitation
    probability, so the weather code stands in for it.
    """

    name = "condition_code"

    def has_liquid_precipitation(self, sample: WeatherSample) -> bool:
        if is_freezing(sample.temperature) or sample.condition_code in FROZEN_CODES:
            return False
        return (
            sample.precipitation_probability > 0
            or sample.condition_code in LIQUID_CODE_INTENSITY
        )

    def precipitation_factor(self, sample: WeatherSample) -> float:
        if sample.precipitation_probability > 0:
            return sample.precipitation_probability / 100
        return LIQUID_CODE_INTENSITY.get(sample.condition_code, 0.0)


class TextCompassPolicy(ScoringPolicy):
    """Forecast-period heuristic driven by short text and compass wind.

    Favours mid-range precipitation chance and half-cloudy skies, daylight
    hours (06-20) only.
    """

    name = "text_compass"

    def _score(self, sample, cloud_cover, elevation, when):
        if when.hour < 6 or when.hour > 20:
            return 0.0

        p = sample.precipitation_probability
        likelihood = p * (100 - p) / 2500
        likelihood *= 1 - abs(cloud_cover - 50) / 50
        likelihood *= wind_factor(sample.wind_speed)

        if mentions_rain(sample.condition) and is_easterly(sample.wind_direction):
            likelihood *= EAST_RAIN_BONUS

        # Sun already inside the rainbow band
        likelihood *= 1.5
        return max(0.0, likelihood)


POLICIES: dict[str, type[ScoringPolicy]] = {
    SunAnglePolicy.name: SunAnglePolicy,
    ConditionCodePolicy.name: ConditionCodePolicy,
    TextCompassPolicy.name: TextCompassPolicy,
}


def build_policy(
    name: str,
    sun_model: str = "solar",
    cloud_cover_ceiling: float = DEFAULT_CLOUD_CEILING,
) -> ScoringPolicy:
    """Construct a scoring policy by name."""
    try:
        policy_cls = POLICIES[name]
        model_cls = SUN_MODELS[sun_model]
    except KeyError as e:
        raise ValueError(f"Unknown scoring policy or sun model: {e}") from e
    return policy_cls(sun_model=model_cls(), cloud_cover_ceiling=cloud_cover_ceiling)
