"""Refresh engine turning raw platform counters into usage snapshots."""

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from resmon.models import UNSUPPORTED_CPU_USAGE, UNSUPPORTED_MEMORY_USAGE, CpuUsage, MemoryUsage
from resmon.provider import PlatformProvider, PsutilProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimeWeightedAverage:
    """
    Average of an irregularly sampled metric, weighted by how long each
    reading stayed current.

    Readings below zero are sentinels and leave the state untouched.
    """

    __slots__ = ("_start", "_last", "_last_value", "_weighted_sum")

    def __init__(self) -> None:
        self._start: int | None = None
        self._last = 0
        self._last_value = 0.0
        self._weighted_sum = 0.0

    def update(self, value: float, now: int) -> float:
        """
        Add a reading taken at monotonic time ``now`` and return the average.

        Args:
            value: The instantaneous reading, or -1.0 if unavailable.
            now: Monotonic timestamp in nanoseconds.
        """
        if value < 0:
            return -1.0

        if self._start is None:
            self._start = now
            self._last = now
            self._last_value = value
            return value

        delta = now - self._last
        self._weighted_sum += self._last_value * delta

        elapsed = now - self._start
        if elapsed > 0:
            average = (self._weighted_sum + value * delta) / (elapsed + delta)
        else:
            average = value

        self._last = now
        self._last_value = value
        return average


class RefreshEngine:
    """
    Owns the running totals behind CpuUsage and MemoryUsage.

    refresh() is serialized by an internal lock. The latest (CpuUsage,
    MemoryUsage) pair is published as a single tuple, so readers never lock and
    never see a mix of two refreshes.
    """

    def __init__(
        self,
        provider: PlatformProvider | None = None,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        """
        Initialize the RefreshEngine.

        Args:
            provider: Source of raw counters. Defaults to a PsutilProvider.
            clock: Monotonic clock returning nanoseconds.
        """
        self._provider = provider if provider is not None else PsutilProvider()
        self._clock = clock
        self._lock = threading.Lock()

        # Chosen on the first refresh and kept, so loads stay on one scale
        self._native_process_load: bool | None = None

        # Manual process CPU fallback
        self._last_cpu_time = 0
        self._last_wall_time: int | None = None

        self._process_average = TimeWeightedAverage()
        self._system_average = TimeWeightedAverage()

        self._max_process_load = -1.0
        self._max_system_load = -1.0
        self._max_used = -1

        self._snapshot: tuple[CpuUsage, MemoryUsage] = (UNSUPPORTED_CPU_USAGE, UNSUPPORTED_MEMORY_USAGE)

    @property
    def provider(self) -> PlatformProvider:
        """The provider this engine reads from."""
        return self._provider

    def snapshot(self) -> tuple[CpuUsage, MemoryUsage]:
        """Get the most recently published pair without refreshing."""
        return self._snapshot

    def cpu_usage(self) -> CpuUsage:
        """Get the most recently published CpuUsage."""
        return self._snapshot[0]

    def memory_usage(self) -> MemoryUsage:
        """Get the most recently published MemoryUsage."""
        return self._snapshot[1]

    def refresh(self) -> tuple[CpuUsage, MemoryUsage]:
        """
        Sample the provider, update running state and publish a new pair.

        Never raises; metrics the platform cannot provide are reported as -1.
        """
        with self._lock:
            memory = self._refresh_memory()

            process_load = self._process_cpu_load()
            self._max_process_load = max(process_load, self._max_process_load)

            system_load = self._system_cpu_load()
            self._max_system_load = max(system_load, self._max_system_load)

            load_average = self._read(self._provider.system_load_average)
            if load_average is None or load_average < 0:
                load_average = -1.0

            now = self._clock()
            cpu = CpuUsage(
                process_load=process_load,
                system_load=system_load,
                system_load_average=float(load_average),
                average_process_load=self._process_average.update(process_load, now),
                average_system_load=self._system_average.update(system_load, now),
                max_process_load=self._max_process_load,
                max_system_load=self._max_system_load,
            )

            self._snapshot = (cpu, memory)
            return self._snapshot

    def _refresh_memory(self) -> MemoryUsage:
        used = self._read(self._provider.heap_used)
        total = self._read(self._provider.heap_committed)

        used = -1 if used is None or used < 0 else int(used)
        total = -1 if total is None or total < 0 else int(total)
        if used >= 0 and total >= 0:
            total = max(total, used)

        self._max_used = max(used, self._max_used)
        return MemoryUsage(used=used, total=total, max_used=self._max_used)

    def _process_cpu_load(self) -> float:
        if self._native_process_load is None:
            self._native_process_load = bool(self._read(self._provider.native_process_load_supported))
            if not self._native_process_load:
                logger.debug("Native process CPU load unavailable, using per-thread CPU times")

        if not self._native_process_load:
            return self._manual_process_cpu_load()

        # A failed native read is unsupported for this refresh only
        load = self._read(self._provider.process_cpu_load)
        if load is None or load < 0:
            return -1.0
        return min(load * 100.0, 100.0)

    def _manual_process_cpu_load(self) -> float:
        """Estimate process CPU load from the CPU time of all live threads."""
        now = self._clock()
        cpu_time = self._total_thread_cpu_time()
        if cpu_time < 0:
            return -1.0

        if self._last_wall_time is None:
            self._last_wall_time = now
            self._last_cpu_time = cpu_time
            return -1.0

        wall_delta = now - self._last_wall_time
        cpu_delta = cpu_time - self._last_cpu_time
        self._last_wall_time = now
        self._last_cpu_time = cpu_time

        # Threads exiting between samples make the sum go backwards
        if wall_delta <= 0 or cpu_delta < 0:
            return 0.0

        return min(cpu_delta / wall_delta, 1.0) * 100.0

    def _total_thread_cpu_time(self) -> int:
        times = self._read(self._provider.thread_cpu_times)
        if times is None:
            return -1

        total = sum(t for t in times.values() if t is not None and t > 0)
        return total if total > 0 else -1

    def _system_cpu_load(self) -> float:
        load = self._read(self._provider.system_cpu_load)
        if load is None or load < 0:
            return -1.0
        return min(load * 100.0, 100.0)

    def _read(self, getter: Callable[[], T | None]) -> T | None:
        """Call a provider getter, treating any failure as unsupported."""
        try:
            return getter()
        except Exception:
            logger.debug("Provider read %s failed", getattr(getter, "__name__", getter), exc_info=True)
            return None
