"""Human-readable formatting of usage values."""

import math

_PREFIXES = "KMGTPE"
DECIMAL_UNIT = 1000
BINARY_UNIT = 1024


def format_percent(pct: float) -> str:
    """Format a percentage with two decimals, or "-1" if unsupported."""
    return "-1" if pct < 0 else f"{pct:.2f}%"


def format_binary_bytes(size: int) -> str:
    """Format bytes using binary (1024-based) units, e.g. "1.50KiB"."""
    return _format_bytes(size, BINARY_UNIT)


def format_decimal_bytes(size: int) -> str:
    """Format bytes using decimal (1000-based) units, e.g. "1.50KB"."""
    return _format_bytes(size, DECIMAL_UNIT)


def _format_bytes(size: int, base: int) -> str:
    if size < 0:
        return "-1"
    if size < base:
        return f"{size} bytes"

    exp = min(int(math.log(size) / math.log(base)), len(_PREFIXES))
    # Float log can land on the wrong side of an exact power
    if exp < len(_PREFIXES) and size >= base ** (exp + 1):
        exp += 1
    elif exp > 1 and size < base**exp:
        exp -= 1
    suffix = "iB" if base == BINARY_UNIT else "B"
    return f"{size / base**exp:.2f}{_PREFIXES[exp - 1]}{suffix}"
