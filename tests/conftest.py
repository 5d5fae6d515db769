"""Shared fixtures: a scriptable provider and a manual clock."""

import pytest


class FakeProvider:
    """PlatformProvider whose readings are set directly by tests."""

    def __init__(self) -> None:
        self.thread_times: dict[int, int | None] | None = None
        self.process_load: float | None = None
        self.system_load: float | None = None
        self.load_average: float | None = None
        self.used: int | None = None
        self.committed: int | None = None
        self.max: int | None = None
        self.processors = 4
        # None: native exactly when process_load is set at first refresh
        self.native: bool | None = None
        self.failing: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"{name} exploded")

    def thread_cpu_times(self):
        self._check("thread_cpu_times")
        return None if self.thread_times is None else dict(self.thread_times)

    def native_process_load_supported(self):
        self._check("native_process_load_supported")
        return self.process_load is not None if self.native is None else self.native

    def process_cpu_load(self):
        self._check("process_cpu_load")
        return self.process_load

    def system_cpu_load(self):
        self._check("system_cpu_load")
        return self.system_load

    def system_load_average(self):
        self._check("system_load_average")
        return self.load_average

    def heap_used(self):
        self._check("heap_used")
        return self.used

    def heap_committed(self):
        self._check("heap_committed")
        return self.committed

    def heap_max(self):
        self._check("heap_max")
        return self.max

    def available_processors(self):
        return self.processors


class FakeClock:
    """Monotonic clock in nanoseconds that only moves when told to."""

    def __init__(self) -> None:
        self.now = 1_000_000_000

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1_000_000_000)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
