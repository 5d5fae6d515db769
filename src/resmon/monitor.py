"""System monitors exposing CPU and memory usage of the current process."""

import logging
import threading
import time
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from typing import Protocol, Self, runtime_checkable

import psutil

from resmon.config import (
    DEFAULT,
    Default,
    coerce_interval,
    default_refresh_interval,
    default_refresh_threshold,
)
from resmon.engine import RefreshEngine
from resmon.models import UNSUPPORTED_CPU_USAGE, UNSUPPORTED_MEMORY_USAGE, CpuUsage, MemoryUsage
from resmon.provider import PlatformProvider

logger = logging.getLogger(__name__)

UpdateListener = Callable[[CpuUsage, MemoryUsage], None]


@runtime_checkable
class SystemMonitor(Protocol):
    """Capability shared by every monitor."""

    def cpu_usage(self) -> CpuUsage: ...

    def memory_usage(self) -> MemoryUsage: ...

    def start(self) -> Self: ...

    def stop(self) -> None: ...


class MonitorState(Enum):
    """Lifecycle states of a BackgroundSystemMonitor."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class UnsupportedSystemMonitor:
    """Monitor that reports every metric as unsupported (-1)."""

    def cpu_usage(self) -> CpuUsage:
        return UNSUPPORTED_CPU_USAGE

    def memory_usage(self) -> MemoryUsage:
        return UNSUPPORTED_MEMORY_USAGE

    def start(self) -> Self:
        return self

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        pass


UNSUPPORTED_MONITOR = UnsupportedSystemMonitor()


class BackgroundSystemMonitor:
    """
    Monitor that refreshes usage metrics from a dedicated daemon thread.

    The thread must be started explicitly with start(). Until then, and again
    after stop(), every read returns the unsupported (-1) snapshot so a monitor
    that is not running can't be mistaken for a live one. A stopped monitor
    cannot be restarted.
    """

    def __init__(
        self,
        refresh_interval: timedelta | float | Default = DEFAULT,
        *,
        provider: PlatformProvider | None = None,
        engine: RefreshEngine | None = None,
    ) -> None:
        """
        Initialize the BackgroundSystemMonitor.

        Args:
            refresh_interval: Time between refreshes (timedelta or seconds).
                Defaults to RESMON_REFRESH_INTERVAL.
            provider: Counter source for a new engine. Ignored if engine is given.
            engine: Engine to drive. Defaults to a new RefreshEngine.

        Raises:
            TypeError: If refresh_interval is None or not a duration.
            ValueError: If refresh_interval is out of range.
        """
        if refresh_interval is DEFAULT:
            refresh_interval = default_refresh_interval()
        self._refresh_interval = coerce_interval(refresh_interval, "refresh_interval")
        self._engine = engine if engine is not None else RefreshEngine(provider)
        self._listener: UpdateListener | None = None
        self._state = MonitorState.CREATED
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def with_default_refresh_interval(cls) -> Self:
        """Create a monitor using the configured default refresh interval."""
        return cls()

    @classmethod
    def refresh_every(cls, refresh_interval: timedelta | float) -> Self:
        """Create a monitor refreshing every ``refresh_interval``."""
        return cls(refresh_interval)

    @property
    def refresh_interval(self) -> float:
        """Seconds between background refreshes."""
        return self._refresh_interval

    @property
    def state(self) -> MonitorState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._state is MonitorState.RUNNING and self._thread is not None and self._thread.is_alive()

    def register_update_listener(self, listener: UpdateListener) -> Self:
        """
        Register a callback invoked after every refresh.

        The listener runs on the monitor thread, so it should return quickly.
        Only one listener may be registered, and only before start().

        Raises:
            TypeError: If listener is None.
            RuntimeError: If a listener is already registered or the monitor
                has left the created state.
        """
        if listener is None:
            raise TypeError("listener is None")
        with self._state_lock:
            if self._state is not MonitorState.CREATED:
                raise RuntimeError(f"cannot register a listener on a {self._state.value} monitor")
            if self._listener is not None:
                raise RuntimeError("an update listener is already registered")
            self._listener = listener
        return self

    def cpu_usage(self) -> CpuUsage:
        if not self.is_running:
            return UNSUPPORTED_MONITOR.cpu_usage()
        return self._engine.cpu_usage()

    def memory_usage(self) -> MemoryUsage:
        if not self.is_running:
            return UNSUPPORTED_MONITOR.memory_usage()
        return self._engine.memory_usage()

    def start(self) -> Self:
        """
        Start the monitoring thread.

        Metrics are refreshed once before this returns. The listener (if any)
        receives that initial snapshot from the monitor thread, ahead of every
        periodic one.

        Raises:
            RuntimeError: If the monitor was already started or stopped.
        """
        with self._state_lock:
            if self._state is not MonitorState.CREATED:
                raise RuntimeError(f"cannot start a {self._state.value} monitor")

            initial = self._engine.refresh()
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(initial,),
                daemon=True,
                name="BackgroundSystemMonitor",
            )
            self._state = MonitorState.RUNNING
            self._thread.start()

        logger.info("Background monitor started, refreshing every %.3fs", self._refresh_interval)
        return self

    def stop(self) -> None:
        """Stop the monitoring thread and wait for it to exit."""
        with self._state_lock:
            was_running = self._state is MonitorState.RUNNING
            self._state = MonitorState.STOPPED
            self._stop_event.set()
            thread = self._thread

        # Joining a finished thread returns at once, so repeated calls are safe
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if was_running:
            logger.info("Background monitor stopped")

    def close(self) -> None:
        """Alias for stop()."""
        self.stop()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _poll_loop(self, initial: tuple[CpuUsage, MemoryUsage]) -> None:
        """Main polling loop running in the background thread."""
        self._notify(*initial)
        # Wait for the interval or until stop is requested
        while not self._stop_event.wait(timeout=self._refresh_interval):
            cpu, memory = self._engine.refresh()
            self._notify(cpu, memory)

    def _notify(self, cpu: CpuUsage, memory: MemoryUsage) -> None:
        if self._listener is None:
            return
        try:
            self._listener(cpu, memory)
        except Exception:
            logger.exception("Update listener raised")


class LazySystemMonitor:
    """
    Monitor that refreshes usage metrics on demand.

    A read refreshes the metrics only if ``refresh_threshold`` has elapsed
    since the previous refresh; otherwise the cached snapshot is returned. No
    thread is started, so start(), stop() and close() do nothing.
    """

    def __init__(
        self,
        refresh_threshold: timedelta | float | Default = DEFAULT,
        *,
        provider: PlatformProvider | None = None,
        engine: RefreshEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the LazySystemMonitor.

        Args:
            refresh_threshold: Minimum time between refreshes (timedelta or
                seconds). Defaults to RESMON_REFRESH_THRESHOLD.
            provider: Counter source for a new engine. Ignored if engine is given.
            engine: Engine to drive. Defaults to a new RefreshEngine.
            clock: Monotonic clock in seconds used for debouncing.

        Raises:
            TypeError: If refresh_threshold is None or not a duration.
            ValueError: If refresh_threshold is out of range.
        """
        if refresh_threshold is DEFAULT:
            refresh_threshold = default_refresh_threshold()
        self._refresh_threshold = coerce_interval(refresh_threshold, "refresh_threshold")
        self._engine = engine if engine is not None else RefreshEngine(provider)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_refresh: float | None = None

    @classmethod
    def with_default_refresh_threshold(cls) -> Self:
        """Create a monitor using the configured default refresh threshold."""
        return cls()

    @classmethod
    def with_refresh_threshold(cls, refresh_threshold: timedelta | float) -> Self:
        """Create a monitor refreshing at most once per ``refresh_threshold``."""
        return cls(refresh_threshold)

    @property
    def refresh_threshold(self) -> float:
        """Minimum seconds between refreshes."""
        return self._refresh_threshold

    def cpu_usage(self) -> CpuUsage:
        self._refresh_if_stale()
        return self._engine.cpu_usage()

    def memory_usage(self) -> MemoryUsage:
        self._refresh_if_stale()
        return self._engine.memory_usage()

    def start(self) -> Self:
        return self

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        pass

    def _refresh_if_stale(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last_refresh is None or now - self._last_refresh >= self._refresh_threshold:
                self._engine.refresh()
                self._last_refresh = now


def available_memory() -> int:
    """Get the total physical memory in bytes, or -1 if unknown."""
    try:
        return psutil.virtual_memory().total
    except (psutil.Error, OSError):
        logger.debug("Physical memory size unavailable", exc_info=True)
        return -1


def available_processors() -> int:
    """Get the number of logical processors."""
    return psutil.cpu_count(logical=True) or 1


def is_system_cpu_usage_supported() -> bool:
    """Check whether system-wide CPU load can be measured on this platform."""
    # Reading cpu_times() leaves the cpu_percent() baseline of running monitors alone
    try:
        psutil.cpu_times()
    except (psutil.Error, OSError, NotImplementedError):
        return False
    return True
