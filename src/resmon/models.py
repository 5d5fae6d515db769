"""Data models for resmon."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class CpuUsage:
    """Immutable snapshot of CPU utilization.

    Percentages are in the range 0.0 - 100.0. A value of exactly -1.0 means the
    metric is not supported on this platform or has not been computed yet.
    """

    process_load: float
    system_load: float
    system_load_average: float  # 1-minute load average, not a percentage
    average_process_load: float
    average_system_load: float
    max_process_load: float
    max_system_load: float


@dataclass(slots=True, frozen=True)
class MemoryUsage:
    """Immutable snapshot of process memory usage in bytes (-1 if unsupported)."""

    used: int
    total: int  # Committed, never below used
    max_used: int


UNSUPPORTED_CPU_USAGE = CpuUsage(
    process_load=-1.0,
    system_load=-1.0,
    system_load_average=-1.0,
    average_process_load=-1.0,
    average_system_load=-1.0,
    max_process_load=-1.0,
    max_system_load=-1.0,
)

UNSUPPORTED_MEMORY_USAGE = MemoryUsage(used=-1, total=-1, max_used=-1)
