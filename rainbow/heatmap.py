"""Spatial heatmap: sample a circular grid of points around a center."""

from __future__ import annotations

import asyncio
import math
from typing import Awaitable, Callable

import structlog

from rainbow.models import Coordinate, HeatmapPoint, WeatherSample
from rainbow.predictor import parse_timestamp
from rainbow.scoring import ScoringPolicy, clamp_likelihood

logger = structlog.get_logger()

# Rough miles per degree of latitude
MILES_PER_DEGREE = 69.0
DEFAULT_RESOLUTION = 0.05

# Absorbs float error so points exactly on the radius stay in
_EPSILON = 1e-9

SampleFetcher = Callable[[Coordinate], Awaitable[WeatherSample]]


def radius_to_degrees(radius: float) -> float:
    return radius / MILES_PER_DEGREE


def normalize_resolution(resolution: float | None, default: float = DEFAULT_RESOLUTION) -> float:
    """Fall back to the default step for missing, non-finite or non-positive values."""
    if resolution is None or not math.isfinite(resolution) or resolution <= 0:
        return default
    return resolution


def within_radius(dlat: float, dlon: float, radius_deg: float) -> bool:
    """Circular mask over the square lattice, boundary inclusive."""
    return math.hypot(dlat, dlon) <= radius_deg + _EPSILON


def _axis_count(radius_deg: float, resolution: float) -> int:
    return int(math.floor(2 * radius_deg / resolution + _EPSILON)) + 1


def _axis_ticks(radius_deg: float, resolution: float) -> list[float]:
    count = _axis_count(radius_deg, resolution)
    return [round(-radius_deg + i * resolution, 10) for i in range(count)]


def lattice_size(radius_deg: float, resolution: float) -> int:
    """Number of points in the square lattice before masking."""
    return _axis_count(radius_deg, resolution) ** 2


def grid_offsets(radius_deg: float, resolution: float) -> list[tuple[float, float]]:
    """Enumerate (dlat, dlon) offsets inside the radius, row by row.

    Each axis starts at ``-radius_deg`` and advances by ``resolution``
    while it stays within ``+radius_deg``. The center is on the lattice
    only when the radius is a whole number of steps.
    """
    ticks = _axis_ticks(radius_deg, resolution)
    return [
        (dlat, dlon)
        for dlat in ticks
        for dlon in ticks
        if within_radius(dlat, dlon, radius_deg)
    ]


def grid_points(center: Coordinate, radius_deg: float, resolution: float) -> list[Coordinate]:
    points = []
    for dlat, dlon in grid_offsets(radius_deg, resolution):
        lat = round(center.lat + dlat, 6)
        lon = round(center.lon + dlon, 6)
        if -90 <= lat <= 90 and -180 <= lon <= 180:
            points.append(Coordinate(lat, lon))
    return points


async def generate_heatmap(
    center: Coordinate,
    radius: float,
    resolution: float | None,
    fetch_sample: SampleFetcher,
    policy: ScoringPolicy,
    concurrency: int = 8,
    deadline: float | None = None,
) -> list[HeatmapPoint]:
    """Score every grid point around ``center`` within ``radius`` miles.

    Fetches run concurrently, at most ``concurrency`` at a time. A point
    whose fetch or decode fails is logged and omitted. When ``deadline``
    seconds pass, outstanding fetches are cancelled and the points that
    finished are returned. Output follows enumeration order.
    """
    radius_deg = radius_to_degrees(radius)
    resolution = normalize_resolution(resolution)
    points = grid_points(center, radius_deg, resolution)
    if not points:
        return []

    sem = asyncio.Semaphore(max(1, concurrency))

    async def _sample(point: Coordinate) -> HeatmapPoint | None:
        try:
            async with sem:
                sample = await fetch_sample(point)
            when = parse_timestamp(sample.timestamp)
            likelihood = clamp_likelihood(policy.score(sample, point, when))
        except Exception as e:
            logger.warning("heatmap_point_failed", lat=point.lat, lon=point.lon, error=str(e))
            return None
        return HeatmapPoint(lat=point.lat, lon=point.lon, likelihood=likelihood)

    logger.info(
        "heatmap_started",
        lat=center.lat,
        lon=center.lon,
        radius_deg=round(radius_deg, 4),
        resolution=resolution,
        points=len(points),
    )

    tasks = [asyncio.create_task(_sample(p)) for p in points]
    try:
        done, pending = await asyncio.wait(tasks, timeout=deadline)
    finally:
        unfinished = [t for t in tasks if not t.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

    if pending:
        logger.warning(
            "heatmap_deadline_exceeded",
            completed=len(done),
            cancelled=len(pending),
            deadline=deadline,
        )

    results = []
    for task in tasks:
        if task in done:
            point = task.result()
            if point is not None:
                results.append(point)
    return results
