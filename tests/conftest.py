from __future__ import annotations

import heapq
import itertools
import random
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import pytest

from keepawake.adapters.base import DisplayBounds, RelaunchError
from keepawake.config import AppConfig, JiggleInterval
from keepawake.core.activity_driver import ActivityDriver


class ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """手动推进的时钟，回调按触发时间顺序执行。"""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def pending(self) -> list[ManualHandle]:
        return [handle for _, _, handle in self._queue if not handle.cancelled]

    def advance(self, seconds: float) -> None:
        self.advance_to(self._now + seconds)

    def advance_to(self, target: float) -> None:
        while self._queue and self._queue[0][0] <= target:
            _, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = handle.when
            handle.callback()
        self._now = target


class FakeDesktop:
    """同时充当合成事件注入器与系统空闲时间来源。"""

    def __init__(self, scheduler: ManualScheduler, width: float = 1440.0, height: float = 900.0) -> None:
        self._scheduler = scheduler
        self.bounds: Optional[DisplayBounds] = DisplayBounds(0.0, 0.0, width, height)
        self.cursor = (100.0, 100.0)
        self.events_register = True
        self.last_input_at = scheduler.now()
        self.moves: list[tuple[float, float, float]] = []
        self.key_taps: list[float] = []

    @property
    def emission_times(self) -> list[float]:
        return list(self.key_taps)

    def user_input(self) -> None:
        self.last_input_at = self._scheduler.now()

    def cursor_position(self) -> tuple[float, float]:
        return self.cursor

    def display_bounds(self) -> Optional[DisplayBounds]:
        return self.bounds

    def move_cursor(self, x: float, y: float) -> None:
        self.moves.append((self._scheduler.now(), x, y))
        self.cursor = (x, y)
        self._register()

    def tap_modifier(self) -> None:
        self.key_taps.append(self._scheduler.now())
        self._register()

    def idle_seconds(self) -> float:
        return self._scheduler.now() - self.last_input_at

    def _register(self) -> None:
        if self.events_register:
            self.last_input_at = self._scheduler.now()


class FakeAssertions:
    def __init__(self) -> None:
        self.active = 0
        self.acquired = 0
        self.released = 0
        self.fail_acquire = False

    @contextmanager
    def __call__(self) -> Iterator[None]:
        if self.fail_acquire:
            raise OSError("assertion unavailable")
        self.active += 1
        self.acquired += 1
        try:
            yield None
        finally:
            self.active -= 1
            self.released += 1


class FakeRelauncher:
    def __init__(self) -> None:
        self.calls = 0
        self.fail = False

    def relaunch(self) -> None:
        self.calls += 1
        if self.fail:
            raise RelaunchError("spawn failed")


class FakePowerSource:
    def __init__(self, on_battery: bool = False) -> None:
        self.on_battery = on_battery

    def is_on_battery(self) -> bool:
        return self.on_battery


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def desktop(scheduler: ManualScheduler) -> FakeDesktop:
    return FakeDesktop(scheduler)


@pytest.fixture
def assertions() -> FakeAssertions:
    return FakeAssertions()


@pytest.fixture
def relauncher() -> FakeRelauncher:
    return FakeRelauncher()


@pytest.fixture
def make_driver(
    scheduler: ManualScheduler,
    desktop: FakeDesktop,
    assertions: FakeAssertions,
    relauncher: FakeRelauncher,
) -> Callable[..., ActivityDriver]:
    def _make(
        interval: JiggleInterval = JiggleInterval.THIRTY_SECONDS,
        randomize: bool = False,
        config: Optional[AppConfig] = None,
        seed: int = 7,
    ) -> ActivityDriver:
        return ActivityDriver(
            scheduler,
            injector=desktop,
            idle_source=desktop,
            relauncher=relauncher,
            assertion_factory=assertions,
            config=config or AppConfig(),
            interval=interval,
            randomize=randomize,
            rng=random.Random(seed),
        )

    return _make
