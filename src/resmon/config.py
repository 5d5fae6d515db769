"""Configuration defaults for resmon.

Defaults can be overridden through the environment:

- ``RESMON_REFRESH_INTERVAL``: seconds between background refreshes.
- ``RESMON_REFRESH_THRESHOLD``: minimum seconds between on-demand refreshes.

The variables are read when a monitor is built, not at import.
"""

import math
import os
import threading
from datetime import timedelta
from enum import Enum

FALLBACK_REFRESH_INTERVAL = 0.25
FALLBACK_REFRESH_THRESHOLD = 0.25


class Default(Enum):
    """Marker for "use the configured default" in monitor constructors."""

    VALUE = "default"


DEFAULT = Default.VALUE


def _env_seconds(name: str, fallback: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        seconds = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    return coerce_interval(seconds, name)


def default_refresh_interval() -> float:
    """Get the background refresh interval from RESMON_REFRESH_INTERVAL."""
    return _env_seconds("RESMON_REFRESH_INTERVAL", FALLBACK_REFRESH_INTERVAL)


def default_refresh_threshold() -> float:
    """Get the on-demand refresh threshold from RESMON_REFRESH_THRESHOLD."""
    return _env_seconds("RESMON_REFRESH_THRESHOLD", FALLBACK_REFRESH_THRESHOLD)


def coerce_interval(value: timedelta | float | None, name: str) -> float:
    """
    Validate a refresh interval and return it in seconds.

    Args:
        value: A timedelta or a number of seconds.
        name: Parameter name used in error messages.

    Raises:
        TypeError: If value is None or not a duration.
        ValueError: If value is zero, negative, not finite, or longer than
            the platform's longest thread wait.
    """
    if value is None:
        raise TypeError(f"{name} is None")
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise TypeError(f"{name} must be a timedelta or a number of seconds, got {type(value).__name__}")
    if not seconds > 0:
        raise ValueError(f"{name} <= 0")
    # Event.wait() overflows past TIMEOUT_MAX
    if not math.isfinite(seconds) or seconds > threading.TIMEOUT_MAX:
        raise ValueError(f"{name} must be at most {threading.TIMEOUT_MAX} seconds")
    return seconds
