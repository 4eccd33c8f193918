"""Pick the best forecast period for a rainbow."""

from __future__ import annotations

from datetime import datetime

import structlog

from rainbow.errors import ParseError
from rainbow.models import Coordinate, ForecastSeries, Prediction
from rainbow.scoring import ScoringPolicy, clamp_likelihood

logger = structlog.get_logger()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 / RFC 3339 timestamp."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, TypeError, ValueError) as e:
        raise ParseError(f"Invalid timestamp: {value!r}") from e


def predict_best_period(
    series: ForecastSeries,
    location: Coordinate,
    policy: ScoringPolicy,
    label: str | None = None,
) -> Prediction:
    """Scan the series and return the highest-scoring period.

    Scores are clamped before comparison and ties keep the earliest
    period, so the first saturated period wins. Samples with unparseable
    timestamps are logged and skipped. With nothing scoring above zero the
    prediction has no time and a likelihood of 0.
    """
    best_likelihood = 0.0
    best_time: datetime | None = None

    for sample in series:
        try:
            when = parse_timestamp(sample.timestamp)
        except ParseError as e:
            logger.warning("timestamp_parse_failed", timestamp=sample.timestamp, error=str(e))
            continue

        likelihood = clamp_likelihood(policy.score(sample, location, when))
        if likelihood > best_likelihood:
            best_likelihood = likelihood
            best_time = when

    return Prediction(
        location=label or location.label(),
        time=best_time,
        likelihood=best_likelihood,
    )
