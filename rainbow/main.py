"""Rainbow prediction FastAPI service."""

from __future__ import annotations

import httpx
import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from rainbow.cache import TTLCache
from rainbow.client import WeatherClient
from rainbow.config import get_settings
from rainbow.errors import ConfigError, NotFound, UpstreamUnavailable, ValidationError
from rainbow.models import HealthResponse, HeatmapPointResponse, PredictionResponse
from rainbow.service import RainbowService

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="Rainbow Prediction", version="1.0.0")

# The browser map fetches /predict and /heatmap directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

service: RainbowService | None = None


@app.on_event("startup")
async def startup():
    global service
    settings = get_settings()

    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)
    cache = TTLCache(ttl_seconds=settings.cache_ttl_seconds)
    client = WeatherClient(http, cache, settings)
    service = RainbowService(client, settings)
    logger.info(
        "rainbow_service_ready",
        forecast_provider=settings.forecast_provider,
        scoring_policy=settings.scoring_policy,
        heatmap_scoring_policy=settings.heatmap_scoring_policy,
        sun_model=settings.sun_model,
    )


@app.on_event("shutdown")
async def shutdown():
    if service is not None:
        await service.client.aclose()


def _require_service() -> RainbowService:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service


@app.get("/predict", response_model=PredictionResponse)
async def predict(lat: str | None = None, lon: str | None = None):
    """Best rainbow likelihood in the upcoming forecast for a point."""
    svc = _require_service()
    try:
        prediction = await svc.predict(lat, lon)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        logger.warning("predict_not_found", lat=lat, lon=lon, error=str(e))
        raise HTTPException(status_code=svc.settings.not_found_status, detail=str(e))
    except (UpstreamUnavailable, ConfigError) as e:
        logger.error("predict_upstream_error", lat=lat, lon=lon, error=str(e))
        raise HTTPException(status_code=500, detail="Error fetching weather data")

    return PredictionResponse(
        likelihood=prediction.likelihood,
        location=prediction.location,
        time=prediction.time,
    )


@app.get("/heatmap", response_model=list[HeatmapPointResponse])
async def heatmap(
    lat: str | None = None,
    lon: str | None = None,
    radius: str | None = None,
    resolution: str | None = None,
):
    """Likelihood grid around a point. Points whose fetch fails are omitted."""
    svc = _require_service()
    try:
        points = await svc.heatmap(lat, lon, radius, resolution)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return [HeatmapPointResponse(lat=p.lat, lon=p.lon, likelihood=p.likelihood) for p in points]


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")
