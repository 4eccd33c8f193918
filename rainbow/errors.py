"""Error taxonomy for the rainbow service.

Request-level errors surface to the HTTP caller; ``ParseError`` is always
absorbed by the code that iterates data points.
"""

from __future__ import annotations


class RainbowError(Exception):
    """Base class for all rainbow service errors."""


class ValidationError(RainbowError):
    """Malformed or out-of-range coordinates or parameters."""


class NotFound(RainbowError):
    """Coordinates are outside the upstream provider's coverage."""


class ConfigError(RainbowError):
    """Upstream metadata is missing something required to continue."""


class ParseError(RainbowError):
    """A single data point could not be decoded."""


class UpstreamUnavailable(RainbowError):
    """Network failure or non-2xx status that persisted through all retries."""

    def __init__(self, message: str, attempts: int = 0, last_error: Exception | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
