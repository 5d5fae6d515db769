"""Platform counters backing the refresh engine."""

import logging
from collections.abc import Mapping
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)

# Errors psutil raises for missing support, permissions, or vanished threads
_PLATFORM_ERRORS = (psutil.Error, OSError, NotImplementedError)


class PlatformProvider(Protocol):
    """
    Source of raw resource counters.

    Every method is a non-blocking read of counters the kernel or runtime
    already maintains. Methods return None when the platform cannot answer.
    """

    def thread_cpu_times(self) -> Mapping[int, int | None] | None:
        """Map each live thread id to its cumulative CPU time in nanoseconds."""
        ...

    def native_process_load_supported(self) -> bool:
        """Whether process_cpu_load() is the source of process CPU load."""
        ...

    def process_cpu_load(self) -> float | None:
        """Recent CPU load of this process as a fraction of all processors."""
        ...

    def system_cpu_load(self) -> float | None:
        """Recent system-wide CPU load as a fraction."""
        ...

    def system_load_average(self) -> float | None:
        """The 1-minute system load average."""
        ...

    def heap_used(self) -> int | None:
        """Bytes currently occupied by this process."""
        ...

    def heap_committed(self) -> int | None:
        """Bytes currently committed to this process."""
        ...

    def heap_max(self) -> int | None:
        """Upper bound on the memory available to this process."""
        ...

    def available_processors(self) -> int:
        """Number of logical processors."""
        ...


class PsutilProvider:
    """
    PlatformProvider backed by psutil.

    Process and system CPU load use psutil's non-blocking cpu_percent(), which
    measures since the previous call. Both are primed on construction so the
    first reading covers the time since the provider was created.
    """

    def __init__(
        self,
        process: psutil.Process | None = None,
        *,
        native_process_load: bool = True,
    ) -> None:
        """
        Initialize the PsutilProvider.

        Args:
            process: Process to observe. Defaults to the current process.
            native_process_load: If False, process load is derived from
                per-thread CPU times instead of cpu_percent().
        """
        self._process = process if process is not None else psutil.Process()
        self._native_process_load = native_process_load
        self._cpu_count = psutil.cpu_count(logical=True) or 1
        self._system_cpu_supported = True

        try:
            self._process.cpu_percent(interval=None)
        except _PLATFORM_ERRORS:
            logger.debug("Process CPU load unavailable", exc_info=True)
            self._native_process_load = False

        try:
            psutil.cpu_percent(interval=None)
        except _PLATFORM_ERRORS:
            logger.debug("System CPU load unavailable", exc_info=True)
            self._system_cpu_supported = False

    @property
    def system_cpu_supported(self) -> bool:
        """Whether system-wide CPU load can be read on this platform."""
        return self._system_cpu_supported

    def native_process_load_supported(self) -> bool:
        return self._native_process_load

    def thread_cpu_times(self) -> dict[int, int | None] | None:
        try:
            threads = self._process.threads()
        except _PLATFORM_ERRORS:
            logger.debug("Per-thread CPU times unavailable", exc_info=True)
            return None

        times: dict[int, int | None] = {}
        for thread in threads:
            try:
                times[thread.id] = int((thread.user_time + thread.system_time) * 1_000_000_000)
            except (TypeError, ValueError):
                # Thread reported garbage counters; count it as no contribution
                times[thread.id] = None
        return times

    def process_cpu_load(self) -> float | None:
        if not self._native_process_load:
            return None
        try:
            percent = self._process.cpu_percent(interval=None)
        except _PLATFORM_ERRORS:
            logger.debug("Process CPU load read failed", exc_info=True)
            return None
        # psutil reports a sum over processors, 100.0 per busy core
        return percent / (100.0 * self._cpu_count)

    def system_cpu_load(self) -> float | None:
        if not self._system_cpu_supported:
            return None
        try:
            return psutil.cpu_percent(interval=None) / 100.0
        except _PLATFORM_ERRORS:
            logger.debug("System CPU load read failed", exc_info=True)
            return None

    def system_load_average(self) -> float | None:
        # psutil emulates getloadavg() on Windows with a sampling thread; only
        # platforms with a native load average are reported
        if not psutil.POSIX:
            return None
        try:
            return psutil.getloadavg()[0]
        except _PLATFORM_ERRORS:
            logger.debug("Load average unavailable", exc_info=True)
            return None

    def heap_used(self) -> int | None:
        try:
            return self._process.memory_info().rss
        except _PLATFORM_ERRORS:
            logger.debug("Resident memory unavailable", exc_info=True)
            return None

    def heap_committed(self) -> int | None:
        # Virtual size counts reserved address space, so it is never used here.
        # Windows: private bytes (commit charge). Linux: resident plus swapped
        # out pages. Elsewhere nothing better than resident size is exposed.
        try:
            if psutil.WINDOWS:
                return self._process.memory_info().private
            if psutil.LINUX:
                full = self._process.memory_full_info()
                return full.rss + full.swap
            return self._process.memory_info().rss
        except _PLATFORM_ERRORS:
            logger.debug("Committed memory size unavailable", exc_info=True)
            return None

    def heap_max(self) -> int | None:
        try:
            return psutil.virtual_memory().total
        except _PLATFORM_ERRORS:
            logger.debug("Physical memory size unavailable", exc_info=True)
            return None

    def available_processors(self) -> int:
        return self._cpu_count
