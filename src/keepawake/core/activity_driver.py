"""周期性合成输入：空闲判定、自检与失效恢复。"""

from __future__ import annotations

import logging
import random
from contextlib import ExitStack
from enum import Enum, auto
from typing import Callable, Optional

from keepawake.adapters.base import (
    EventInjector,
    IdleSource,
    RelaunchError,
    Relauncher,
    SleepAssertionFactory,
)
from keepawake.config import AppConfig, JiggleInterval
from keepawake.core.scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class CycleOutcome(Enum):
    """单次周期的结果。"""

    EMITTED = auto()
    USER_ACTIVE = auto()
    RECOVERY = auto()
    STOPPED = auto()


class ActivityDriver:
    """按间隔发送合成事件，并检测这些事件是否真正生效。

    每个周期比较“距上次已知输入的时间”与系统报告的空闲时间：

    * 系统空闲时间明显更短，说明用户有真实输入，本周期跳过；
    * 系统空闲时间明显更长，说明合成事件没有被系统记录，失败计数加一；
    * 连续失败达到阈值时执行一次硬恢复（默认重启整个进程）。

    运行期间持有一个阻止显示器闲置休眠的断言，停止、关闭或重启前释放。
    """

    def __init__(
        self,
        scheduler: Scheduler,
        injector: EventInjector,
        idle_source: IdleSource,
        relauncher: Relauncher,
        assertion_factory: SleepAssertionFactory,
        config: Optional[AppConfig] = None,
        interval: JiggleInterval = JiggleInterval.THIRTY_SECONDS,
        randomize: bool = False,
        rng: Optional[random.Random] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._injector = injector
        self._idle_source = idle_source
        self._relauncher = relauncher
        self._assertion_factory = assertion_factory
        self._config = config or AppConfig.load_default()
        self._interval = interval
        self._randomize = randomize
        self._rng = rng or random.Random()
        self._on_change = on_change

        self._running = False
        self._timer: Optional[TimerHandle] = None
        self._settle_timer: Optional[TimerHandle] = None
        self._resources: Optional[ExitStack] = None
        self._reference_at: Optional[float] = None
        self._failure_count = 0
        self._direction = 1
        self._last_emit_at: Optional[float] = None
        self._emit_count = 0
        self._relaunch_requested = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval(self) -> JiggleInterval:
        return self._interval

    @property
    def randomize(self) -> bool:
        return self._randomize

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_emit_at(self) -> Optional[float]:
        return self._last_emit_at

    @property
    def emit_count(self) -> int:
        return self._emit_count

    @property
    def relaunch_requested(self) -> bool:
        return self._relaunch_requested

    def set_on_change(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_change = callback

    def set_running(self, running: bool) -> None:
        if running:
            if self._running:
                logger.debug("已在运行，重新启动循环")
            self._start()
            return

        if not self._running:
            return
        self._halt()
        self._running = False
        logger.info("已停止合成输入")
        self._notify()

    def set_interval(self, interval: JiggleInterval) -> None:
        if interval == self._interval:
            return
        self._interval = interval
        logger.info("触发间隔调整为 %s", interval.label)
        if self._running:
            self._start()
        else:
            self._notify()

    def set_randomize(self, randomize: bool) -> None:
        if randomize == self._randomize:
            return
        self._randomize = randomize
        if self._running:
            self._start()
        else:
            self._notify()

    def handle_wake(self) -> None:
        """系统唤醒或解锁后，定时器与断言可能失效，稍后整体重启。"""

        if not self._running:
            return
        if self._settle_timer is not None:
            self._settle_timer.cancel()
        self._settle_timer = self._scheduler.call_later(
            self._config.wake_settle_seconds, self._restart_after_wake
        )

    def close(self) -> None:
        self.set_running(False)

    def perform_cycle(self) -> CycleOutcome:
        """立即执行一个周期，并取代尚未触发的下一次定时。"""

        self._cancel_tick()
        if not self._running:
            return CycleOutcome.STOPPED

        now = self._scheduler.now()
        outcome = self._evaluate_idle(now, self._idle_source.idle_seconds())

        if outcome is CycleOutcome.USER_ACTIVE:
            logger.debug("检测到用户输入，本周期跳过")
            self._schedule_next()
            return outcome

        if outcome is CycleOutcome.RECOVERY:
            self._recover()
            return outcome

        self._emit(now)
        self._schedule_next()
        return outcome

    def _evaluate_idle(self, now: float, idle: float) -> CycleOutcome:
        if self._reference_at is None:
            return CycleOutcome.EMITTED

        tolerance = self._config.idle_tolerance_seconds
        since = now - self._reference_at
        drift = idle - since

        if drift < -tolerance:
            self._failure_count = 0
            self._reference_at = now - idle
            return CycleOutcome.USER_ACTIVE

        if drift > tolerance:
            self._failure_count += 1
            logger.debug(
                "系统空闲 %.1fs 超过预期 %.1fs，连续失败 %d 次", idle, since, self._failure_count
            )
            if self._failure_count >= self._config.failure_threshold:
                self._failure_count = 0
                return CycleOutcome.RECOVERY
            return CycleOutcome.EMITTED

        self._failure_count = 0
        return CycleOutcome.EMITTED

    def _emit(self, now: float) -> None:
        try:
            x, y = self._injector.cursor_position()
            offset = self._rng.randint(1, self._config.max_pixel_offset) if self._randomize else 1
            dx = offset * self._direction
            bounds = self._injector.display_bounds()
            if bounds is not None and not bounds.contains_x(x + dx):
                dx = -dx
            self._direction = -self._direction

            self._injector.move_cursor(x + dx, y)
            self._injector.move_cursor(x, y)
            self._injector.tap_modifier()
        except Exception:
            logger.exception("发送合成事件失败")
            return

        self._last_emit_at = now
        self._reference_at = now
        self._emit_count += 1
        self._notify()

    def _recover(self) -> None:
        threshold = self._config.failure_threshold
        if self._config.recovery_mode == "restart":
            logger.warning("合成事件连续 %d 次未生效，重启事件循环", threshold)
            self._start()
            return

        logger.warning("合成事件连续 %d 次未生效，请求重启进程", threshold)
        self._relaunch_requested = True
        try:
            self._relauncher.relaunch()
        except RelaunchError:
            logger.exception("重启进程失败，继续当前循环")
            self._relaunch_requested = False
            self._schedule_next()
            return
        self._notify()

    def _start(self) -> None:
        self._halt()
        self._running = True
        self._relaunch_requested = False
        self._reference_at = None
        self._failure_count = 0
        self._acquire_assertion()
        logger.info(
            "开始合成输入，间隔 %s%s", self._interval.label, "（随机）" if self._randomize else ""
        )
        self._notify()
        self.perform_cycle()

    def _halt(self) -> None:
        self._cancel_tick()
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        self._release_assertion()

    def _on_timer(self) -> None:
        self._timer = None
        self.perform_cycle()

    def _cancel_tick(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_after_wake(self) -> None:
        self._settle_timer = None
        if self._running:
            logger.info("系统唤醒后重启合成输入")
            self._start()

    def _schedule_next(self) -> None:
        self._timer = self._scheduler.call_later(self._next_delay(), self._on_timer)

    def _next_delay(self) -> float:
        base = self._interval.seconds
        if not self._randomize:
            return base
        ratio = self._config.jitter_ratio
        return base * self._rng.uniform(1.0 - ratio, 1.0 + ratio)

    def _acquire_assertion(self) -> None:
        stack = ExitStack()
        try:
            stack.enter_context(self._assertion_factory())
        except Exception:
            logger.warning("无法获取防休眠断言，继续运行", exc_info=True)
        self._resources = stack

    def _release_assertion(self) -> None:
        if self._resources is None:
            return
        resources, self._resources = self._resources, None
        try:
            resources.close()
        except Exception:
            logger.warning("释放防休眠断言失败", exc_info=True)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
