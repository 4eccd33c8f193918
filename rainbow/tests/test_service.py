"""Tests for RainbowService with the weather client mocked."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rainbow.client import samples_from_nws_forecast, samples_from_open_meteo_hourly
from rainbow.config import Settings
from rainbow.errors import NotFound, UpstreamUnavailable, ValidationError
from rainbow.models import Coordinate, PointMetadata, WeatherSample
from rainbow.scoring import ConditionCodePolicy, SunAnglePolicy
from rainbow.service import RainbowService, parse_coordinate, parse_float, parse_optional_float
from rainbow.tests.fixtures import NWS_FORECAST_RESPONSE, OPEN_METEO_HOURLY_RESPONSE

METADATA = PointMetadata(
    grid_id="BOU",
    grid_x=62,
    grid_y=60,
    forecast_hourly_url="https://api.weather.gov/gridpoints/BOU/62,60/forecast/hourly",
)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.fetch_point_metadata = AsyncMock(return_value=METADATA)
    client.fetch_forecast = AsyncMock(return_value=samples_from_nws_forecast(NWS_FORECAST_RESPONSE))
    client.fetch_hourly = AsyncMock(return_value=samples_from_open_meteo_hourly(OPEN_METEO_HOURLY_RESPONSE))
    client.fetch_current = AsyncMock(
        return_value=WeatherSample(
            timestamp="2026-06-18T18:00-06:00",
            temperature=68.0,
            cloud_cover=40.0,
            wind_speed=9.0,
            wind_direction=95.0,
            condition="Slight rain showers",
            condition_code=80,
        )
    )
    return client


def _service(client, **overrides) -> RainbowService:
    return RainbowService(client, Settings(_env_file=None, **overrides))


# ---------------------------------------------------------------------------
# Parameter parsing
# ---------------------------------------------------------------------------


def test_parse_float():
    assert parse_float("39.5", "latitude") == 39.5
    assert parse_float(" -105 ", "longitude") == -105.0


@pytest.mark.parametrize("value", [None, "", "  ", "abc", "nan", "inf"])
def test_parse_float_rejects(value):
    with pytest.raises(ValidationError):
        parse_float(value, "latitude")


def test_parse_optional_float():
    assert parse_optional_float("0.1") == 0.1
    assert parse_optional_float(None) is None
    assert parse_optional_float("fine") is None


def test_parse_coordinate():
    assert parse_coordinate("39.5", "-105") == Coordinate(39.5, -105.0)


@pytest.mark.parametrize("lat,lon", [("91", "0"), ("-90.5", "0"), ("0", "181"), ("0", "-180.01")])
def test_parse_coordinate_out_of_range(lat, lon):
    with pytest.raises(ValidationError, match="between"):
        parse_coordinate(lat, lon)


def test_parse_coordinate_region():
    colorado = (37.0, 41.0, -109.0, -102.0)
    assert parse_coordinate("37", "-109", colorado) == Coordinate(37.0, -109.0)
    with pytest.raises(ValidationError, match="outside"):
        parse_coordinate("47.6", "-122.3", colorado)


# ---------------------------------------------------------------------------
# predict
# ---------------------------------------------------------------------------


def test_policies_follow_settings(mock_client):
    service = _service(mock_client)
    assert isinstance(service.policy, SunAnglePolicy)
    assert isinstance(service.heatmap_policy, ConditionCodePolicy)


@pytest.mark.asyncio
async def test_predict_uses_point_metadata_and_forecast(mock_client):
    service = _service(mock_client)

    prediction = await service.predict("39.5", "-105.0")

    mock_client.fetch_point_metadata.assert_awaited_once_with(Coordinate(39.5, -105.0))
    mock_client.fetch_forecast.assert_awaited_once_with(METADATA)
    assert prediction.location == "39.5000, -105.0000"
    assert 0 < prediction.likelihood <= 1
    assert prediction.time is not None
    assert prediction.time.hour in (17, 18)


@pytest.mark.asyncio
async def test_predict_open_meteo_provider(mock_client):
    service = _service(mock_client, forecast_provider="open_meteo")

    await service.predict("39.5", "-105.0")

    mock_client.fetch_hourly.assert_awaited_once()
    mock_client.fetch_point_metadata.assert_not_awaited()


@pytest.mark.asyncio
async def test_predict_validation_happens_before_fetch(mock_client):
    service = _service(mock_client)

    with pytest.raises(ValidationError):
        await service.predict("abc", "-105.0")

    mock_client.fetch_point_metadata.assert_not_awaited()


@pytest.mark.asyncio
async def test_predict_region_can_be_disabled(mock_client):
    service = _service(mock_client, restrict_to_region=False)

    prediction = await service.predict("47.6", "-122.3")

    assert prediction.location == "47.6000, -122.3000"


@pytest.mark.asyncio
async def test_predict_propagates_not_found(mock_client):
    mock_client.fetch_point_metadata.side_effect = NotFound("No data available")
    service = _service(mock_client)

    with pytest.raises(NotFound):
        await service.predict("39.5", "-105.0")


@pytest.mark.asyncio
async def test_predict_deadline(mock_client):
    async def _slow(metadata):
        await asyncio.sleep(5)

    mock_client.fetch_forecast.side_effect = _slow
    service = _service(mock_client, predict_deadline_seconds=0.05)

    with pytest.raises(UpstreamUnavailable, match="Timed out"):
        await service.predict("39.5", "-105.0")


# ---------------------------------------------------------------------------
# heatmap
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_heatmap(mock_client):
    service = _service(mock_client)

    points = await service.heatmap("39.5", "-105.0", "6.9", "0.1")

    assert len(points) == 5
    assert mock_client.fetch_current.await_count == 5
    assert all(0 <= p.likelihood <= 1 for p in points)


@pytest.mark.asyncio
async def test_heatmap_invalid_resolution_uses_default(mock_client):
    service = _service(mock_client)

    points = await service.heatmap("39.5", "-105.0", "3", "bogus")

    # 3 miles ~ 0.043 deg at the 0.05 default: 2 x 2 lattice, one point inside
    assert len(points) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("radius", [None, "", "far", "-1"])
async def test_heatmap_rejects_bad_radius(mock_client, radius):
    service = _service(mock_client)

    with pytest.raises(ValidationError):
        await service.heatmap("39.5", "-105.0", radius)


@pytest.mark.asyncio
async def test_heatmap_rejects_oversized_grid(mock_client):
    service = _service(mock_client, heatmap_max_points=100)

    with pytest.raises(ValidationError, match="Grid too large"):
        await service.heatmap("39.5", "-105.0", "20", "0.05")

    mock_client.fetch_current.assert_not_awaited()


@pytest.mark.asyncio
async def test_heatmap_grid_limit_counts_full_lattice(mock_client):
    # 20 miles at 0.05 deg is a 12 x 12 lattice
    with pytest.raises(ValidationError, match="144 points"):
        await _service(mock_client, heatmap_max_points=143).heatmap("39.5", "-105.0", "20", "0.05")

    points = await _service(mock_client, heatmap_max_points=144).heatmap(
        "39.5", "-105.0", "20", "0.05"
    )
    assert 0 < len(points) < 144


@pytest.mark.asyncio
async def test_heatmap_absorbs_point_failures(mock_client):
    mock_client.fetch_current.side_effect = UpstreamUnavailable("down", attempts=3)
    service = _service(mock_client)

    assert await service.heatmap("39.5", "-105.0", "6.9", "0.1") == []
