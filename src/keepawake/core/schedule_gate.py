"""按工作日/周末时间窗口决定是否应当运行。"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Optional

from keepawake.config import DEFAULT_WEEKDAY_WINDOW, DEFAULT_WEEKEND_WINDOW, ScheduleWindow
from keepawake.core.scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


def minute_of_day(moment: dt.datetime) -> int:
    return moment.hour * 60 + moment.minute


def is_weekend(moment: dt.datetime) -> bool:
    return moment.weekday() >= 5


def is_within_schedule(
    moment: dt.datetime,
    weekday: ScheduleWindow,
    weekend: Optional[ScheduleWindow],
) -> bool:
    """周末未配置窗口时始终视为窗口外。"""

    if is_weekend(moment):
        if weekend is None:
            return False
        return weekend.contains(minute_of_day(moment))
    return weekday.contains(minute_of_day(moment))


class ScheduleGate:
    """每隔固定周期检查当前时间，仅在窗口内外切换时发出信号。"""

    def __init__(
        self,
        scheduler: Scheduler,
        emit: Callable[[bool, bool], None],
        weekday: ScheduleWindow = DEFAULT_WEEKDAY_WINDOW,
        weekend: ScheduleWindow = DEFAULT_WEEKEND_WINDOW,
        weekend_enabled: bool = False,
        check_interval: float = 10.0,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._emit = emit
        self._weekday = weekday
        self._weekend = weekend
        self._weekend_enabled = weekend_enabled
        self._check_interval = check_interval
        self._clock = clock or dt.datetime.now
        self._enabled = False
        self._inside = False
        self._timer: Optional[TimerHandle] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def inside(self) -> bool:
        return self._inside

    @property
    def weekday_window(self) -> ScheduleWindow:
        return self._weekday

    @property
    def weekend_window(self) -> ScheduleWindow:
        return self._weekend

    @property
    def weekend_enabled(self) -> bool:
        return self._weekend_enabled

    def set_enabled(self, enabled: bool) -> None:
        if enabled:
            self._enabled = True
            logger.info("日程已启用")
            self._restart_polling()
            return

        was_enabled = self._enabled
        self._enabled = False
        self._cancel_timer()
        self._inside = False
        if was_enabled:
            logger.info("日程已关闭")
        self._emit(False, False)

    def update_windows(
        self,
        weekday: ScheduleWindow,
        weekend: ScheduleWindow,
        weekend_enabled: bool,
    ) -> None:
        self._weekday = weekday
        self._weekend = weekend
        self._weekend_enabled = weekend_enabled
        logger.info(
            "日程窗口：工作日 %s-%s，周末 %s",
            weekday.start,
            weekday.stop,
            f"{weekend.start}-{weekend.stop}" if weekend_enabled else "关闭",
        )
        if self._enabled:
            self._restart_polling()

    def evaluate(self, moment: Optional[dt.datetime] = None) -> bool:
        moment = moment or self._clock()
        weekend = self._weekend if self._weekend_enabled else None
        return is_within_schedule(moment, self._weekday, weekend)

    def handle_wake(self) -> None:
        """休眠期间可能错过了边沿，唤醒后重新评估；窗口内时强制重发启用信号。"""

        if not self._enabled:
            return
        inside = self.evaluate()
        changed = inside != self._inside
        self._inside = inside
        if inside:
            self._emit(True, True)
        elif changed:
            self._emit(False, False)
        self._schedule_next()

    def stop(self) -> None:
        self._cancel_timer()

    def _restart_polling(self) -> None:
        self._cancel_timer()
        self._check()

    def _check(self) -> None:
        self._timer = None
        if not self._enabled:
            return
        inside = self.evaluate()
        if inside != self._inside:
            self._inside = inside
            logger.info("进入日程窗口" if inside else "离开日程窗口")
            self._emit(inside, False)
        self._schedule_next()

    def _schedule_next(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._check_interval, self._check)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
