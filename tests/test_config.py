"""Tests for interval configuration."""

import threading
from datetime import timedelta

import pytest

from resmon.config import (
    FALLBACK_REFRESH_INTERVAL,
    FALLBACK_REFRESH_THRESHOLD,
    coerce_interval,
    default_refresh_interval,
    default_refresh_threshold,
)


def test_defaults_without_environment(monkeypatch):
    """Test unset variables fall back to the built-in defaults."""
    monkeypatch.delenv("RESMON_REFRESH_INTERVAL", raising=False)
    monkeypatch.delenv("RESMON_REFRESH_THRESHOLD", raising=False)

    assert default_refresh_interval() == FALLBACK_REFRESH_INTERVAL
    assert default_refresh_threshold() == FALLBACK_REFRESH_THRESHOLD


def test_defaults_from_environment(monkeypatch):
    """Test the environment overrides the defaults when read."""
    monkeypatch.setenv("RESMON_REFRESH_INTERVAL", "1.5")
    monkeypatch.setenv("RESMON_REFRESH_THRESHOLD", "0.1")

    assert default_refresh_interval() == 1.5
    assert default_refresh_threshold() == 0.1


@pytest.mark.parametrize(
    ("variable", "reader"),
    [
        ("RESMON_REFRESH_INTERVAL", default_refresh_interval),
        ("RESMON_REFRESH_THRESHOLD", default_refresh_threshold),
    ],
)
def test_malformed_environment_names_variable(monkeypatch, variable, reader):
    """Test a non-numeric value fails with the variable name, not at import."""
    monkeypatch.setenv(variable, "fast")

    with pytest.raises(ValueError, match=f"{variable} must be a number of seconds, got 'fast'"):
        reader()


def test_non_positive_environment_rejected(monkeypatch):
    """Test environment values go through the same validation."""
    monkeypatch.setenv("RESMON_REFRESH_INTERVAL", "-2")

    with pytest.raises(ValueError, match="RESMON_REFRESH_INTERVAL <= 0"):
        default_refresh_interval()


def test_coerce_timedelta():
    """Test a timedelta is converted to seconds."""
    assert coerce_interval(timedelta(milliseconds=250), "interval") == 0.25


def test_coerce_seconds():
    """Test numeric seconds pass through as float."""
    assert coerce_interval(2, "interval") == 2.0
    assert coerce_interval(0.5, "interval") == 0.5


def test_coerce_longest_wait_accepted():
    """Test the longest wait a thread supports is still valid."""
    assert coerce_interval(threading.TIMEOUT_MAX, "interval") == threading.TIMEOUT_MAX


def test_coerce_none_raises():
    """Test None is rejected with the parameter name."""
    with pytest.raises(TypeError, match="interval is None"):
        coerce_interval(None, "interval")


@pytest.mark.parametrize("value", [0, 0.0, -1, timedelta(0), timedelta(milliseconds=-100)])
def test_coerce_non_positive_raises(value):
    """Test zero and negative intervals are rejected."""
    with pytest.raises(ValueError, match="interval <= 0"):
        coerce_interval(value, "interval")


@pytest.mark.parametrize("value", [float("nan"), float("-inf")])
def test_coerce_nan_raises(value):
    """Test NaN and negative infinity are not intervals."""
    with pytest.raises(ValueError):
        coerce_interval(value, "interval")


@pytest.mark.parametrize(
    "value",
    [float("inf"), timedelta.max, 1e12],
    ids=["inf", "timedelta-max", "1e12"],
)
def test_coerce_too_long_raises(value):
    """Test intervals a thread cannot wait for are rejected up front."""
    with pytest.raises(ValueError, match="interval must be at most"):
        coerce_interval(value, "interval")


@pytest.mark.parametrize("value", ["1", True, [1]])
def test_coerce_wrong_type_raises(value):
    """Test values that are not durations are rejected."""
    with pytest.raises(TypeError):
        coerce_interval(value, "interval")
