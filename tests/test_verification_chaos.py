"""Verification Test: Chaos Monkey - Thread churn resilience.

Threads are created and finish continuously while the monitor sums per-thread
CPU time. Threads that vanish mid-refresh make the counters non-monotonic; the
monitor must keep publishing in-range values and never raise.
"""

import random
import threading
import time

import pytest

from resmon.monitor import BackgroundSystemMonitor, LazySystemMonitor
from resmon.provider import PsutilProvider


def short_lived_worker(duration: float) -> None:
    """A thread that burns a little CPU and exits."""
    deadline = time.monotonic() + duration
    total = 0
    while time.monotonic() < deadline:
        total += sum(range(1000))


def assert_in_range(cpu, memory) -> None:
    for value in (
        cpu.process_load,
        cpu.system_load,
        cpu.average_process_load,
        cpu.average_system_load,
        cpu.max_process_load,
        cpu.max_system_load,
    ):
        assert value == -1.0 or 0.0 <= value <= 100.0
    assert memory.used == -1 or memory.max_used >= memory.used


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_background_monitor_survives_thread_churn(self):
        """The monitor keeps refreshing while threads come and go."""
        snapshots = []
        monitor = BackgroundSystemMonitor(
            0.05, provider=PsutilProvider(native_process_load=False)
        ).register_update_listener(lambda cpu, memory: snapshots.append((cpu, memory)))

        workers: list[threading.Thread] = []
        try:
            monitor.start()

            start_time = time.time()
            while time.time() - start_time < 3.0:
                for _ in range(5):
                    worker = threading.Thread(target=short_lived_worker, args=(random.uniform(0.01, 0.2),))
                    worker.start()
                    workers.append(worker)
                time.sleep(0.05)

            assert monitor.is_running, "Monitor should still be running after chaos"
        finally:
            for worker in workers:
                worker.join()
            monitor.stop()

        assert len(snapshots) >= 10, f"Expected at least 10 refreshes, got {len(snapshots)}"
        for cpu, memory in snapshots:
            assert_in_range(cpu, memory)

    def test_lazy_monitor_readers_during_churn(self):
        """Many readers racing one lazy monitor never see a failure."""
        monitor = LazySystemMonitor(0.01, provider=PsutilProvider(native_process_load=False))
        errors: list[BaseException] = []
        stop = threading.Event()

        def reader() -> None:
            try:
                while not stop.is_set():
                    assert_in_range(monitor.cpu_usage(), monitor.memory_usage())
            except BaseException as e:
                errors.append(e)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        churn: list[threading.Thread] = []
        for thread in readers:
            thread.start()
        try:
            for _ in range(20):
                worker = threading.Thread(target=short_lived_worker, args=(0.05,))
                worker.start()
                churn.append(worker)
                time.sleep(0.05)
        finally:
            stop.set()
            for thread in readers + churn:
                thread.join()

        if errors:
            pytest.fail(f"Reader failed with exception: {errors[0]!r}")
