"""组合 ActivityDriver、ScheduleGate 与 PowerGate，统一处理优先级。"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from keepawake.config import JiggleInterval, ScheduleWindow
from keepawake.config_store import UserSettings
from keepawake.core.activity_driver import ActivityDriver
from keepawake.core.channel import (
    CoordinationChannel,
    Message,
    PowerSignal,
    PowerSourceChanged,
    ScheduleSignal,
    SetInterval,
    SetPauseOnBattery,
    SetRandomize,
    SetScheduleEnabled,
    SetScheduleWindows,
    Shutdown,
    SystemWake,
    ToggleRun,
)
from keepawake.core.power_gate import PowerGate
from keepawake.core.schedule_gate import ScheduleGate

logger = logging.getLogger(__name__)


@dataclass
class KeepAwakeStatus:
    """供状态栏与 HTTP 接口读取的快照。"""

    running: bool
    interval: JiggleInterval
    randomize: bool
    schedule_enabled: bool
    inside_window: bool
    weekday_window: ScheduleWindow
    weekend_enabled: bool
    weekend_window: ScheduleWindow
    pause_on_battery: bool
    on_battery: bool
    power_paused: bool
    failure_count: int
    emit_count: int
    last_emit_at: Optional[float]
    relaunch_requested: bool
    updated_at: float


class Coordinator:
    """所有状态变更都经由协调通道串行进入这里。

    规则：

    * 手动开关总是生效，并清除电源门控挂起的恢复；
    * 在日程窗口内手动停止后，唤醒时的强制重发不会重新启动，直到下一次真实边沿；
    * 电池暂停期间收到的日程启动请求推迟到接回电源时执行。
    """

    def __init__(
        self,
        channel: CoordinationChannel,
        driver: ActivityDriver,
        schedule_gate: ScheduleGate,
        power_gate: PowerGate,
        publish: Optional[Callable[[KeepAwakeStatus], None]] = None,
        on_settings_changed: Optional[Callable[[UserSettings], None]] = None,
    ) -> None:
        self._channel = channel
        self._driver = driver
        self._schedule = schedule_gate
        self._power = power_gate
        self._publish = publish
        self._on_settings_changed = on_settings_changed
        self._settings = UserSettings()
        self._persisted: Optional[dict] = None
        self._power_paused = False
        self._manual_hold = False
        self._restoring = False
        self._closed = False

        channel.subscribe(ToggleRun, self._on_toggle_run)
        channel.subscribe(SetInterval, self._on_set_interval)
        channel.subscribe(SetRandomize, self._on_set_randomize)
        channel.subscribe(SetScheduleEnabled, self._on_set_schedule_enabled)
        channel.subscribe(SetScheduleWindows, self._on_set_schedule_windows)
        channel.subscribe(SetPauseOnBattery, self._on_set_pause_on_battery)
        channel.subscribe(ScheduleSignal, self._on_schedule_signal)
        channel.subscribe(PowerSourceChanged, self._on_power_source_changed)
        channel.subscribe(PowerSignal, self._on_power_signal)
        channel.subscribe(SystemWake, self._on_system_wake)
        channel.subscribe(Shutdown, self._on_shutdown)
        channel.on_drained(self._sync)
        driver.set_on_change(self._publish_status)

    @property
    def power_paused(self) -> bool:
        return self._power_paused

    @property
    def manual_hold(self) -> bool:
        return self._manual_hold

    def post(self, message: Message) -> None:
        self._channel.post(message)

    def restore(self, settings: UserSettings) -> None:
        """按持久化设置恢复状态，恢复过程本身不会回写存储。"""

        self._settings = copy.deepcopy(settings)
        self._restoring = True
        try:
            self.post(SetInterval(settings.interval))
            self.post(SetRandomize(settings.randomize))
            self.post(
                SetScheduleWindows(
                    weekday=settings.weekday_window,
                    weekend=settings.weekend_window,
                    weekend_enabled=settings.weekend_enabled,
                )
            )
            self.post(SetPauseOnBattery(settings.pause_on_battery))
            if settings.running:
                self.post(ToggleRun(True))
            if settings.schedule_enabled:
                self.post(SetScheduleEnabled(True))
        finally:
            self._restoring = False
        self._persisted = self._settings.to_dict()

    def status(self) -> KeepAwakeStatus:
        return KeepAwakeStatus(
            running=self._driver.is_running,
            interval=self._driver.interval,
            randomize=self._driver.randomize,
            schedule_enabled=self._schedule.enabled,
            inside_window=self._schedule.inside,
            weekday_window=self._schedule.weekday_window,
            weekend_enabled=self._schedule.weekend_enabled,
            weekend_window=self._schedule.weekend_window,
            pause_on_battery=self._power.pause_on_battery,
            on_battery=self._power.on_battery,
            power_paused=self._power_paused,
            failure_count=self._driver.failure_count,
            emit_count=self._driver.emit_count,
            last_emit_at=self._driver.last_emit_at,
            relaunch_requested=self._driver.relaunch_requested,
            updated_at=time.time(),
        )

    def _on_toggle_run(self, message: ToggleRun) -> None:
        # 只记录用户的开关意图，日程、电源与退出引起的停止不写回
        self._settings.running = message.running
        self._power.cancel_pending_resume()
        self._power_paused = False
        if message.running:
            self._manual_hold = False
        elif self._schedule.enabled and self._schedule.inside:
            self._manual_hold = True
        self._driver.set_running(message.running)

    def _on_set_interval(self, message: SetInterval) -> None:
        self._settings.interval = message.interval
        self._driver.set_interval(message.interval)

    def _on_set_randomize(self, message: SetRandomize) -> None:
        self._settings.randomize = message.randomize
        self._driver.set_randomize(message.randomize)

    def _on_set_schedule_enabled(self, message: SetScheduleEnabled) -> None:
        self._settings.schedule_enabled = message.enabled
        if not message.enabled:
            self._manual_hold = False
        self._schedule.set_enabled(message.enabled)

    def _on_set_schedule_windows(self, message: SetScheduleWindows) -> None:
        self._settings.weekday_window = message.weekday
        self._settings.weekend_window = message.weekend
        self._settings.weekend_enabled = message.weekend_enabled
        self._schedule.update_windows(message.weekday, message.weekend, message.weekend_enabled)

    def _on_set_pause_on_battery(self, message: SetPauseOnBattery) -> None:
        self._settings.pause_on_battery = message.enabled
        self._power.set_pause_on_battery(message.enabled)
        if not message.enabled:
            self._power_paused = False

    def _on_schedule_signal(self, message: ScheduleSignal) -> None:
        if not message.inside:
            self._manual_hold = False
            self._power.cancel_pending_resume()
            self._driver.set_running(False)
            return

        if message.refresh:
            if self._manual_hold:
                logger.info("窗口内已手动停止，忽略唤醒后的启动信号")
                return
        else:
            self._manual_hold = False

        if self._power_paused:
            logger.info("电池供电暂停中，接回电源后再启动")
            self._power.defer_resume()
            return
        if self._driver.is_running:
            return
        self._driver.set_running(True)

    def _on_power_source_changed(self, _message: PowerSourceChanged) -> None:
        self._power.handle_power_change()
        # 无挂起恢复时接回电源也要清除暂停标记
        if not self._power.on_battery:
            self._power_paused = False

    def _on_power_signal(self, message: PowerSignal) -> None:
        if message.pause:
            logger.info("切换到电池供电，暂停合成输入")
            self._power_paused = True
            self._driver.set_running(False)
            return
        logger.info("已接回电源，恢复合成输入")
        self._power_paused = False
        self._driver.set_running(True)

    def _on_system_wake(self, message: SystemWake) -> None:
        logger.info("收到系统事件：%s", message.reason)
        self._driver.handle_wake()
        self._schedule.handle_wake()

    def _on_shutdown(self, _message: Shutdown) -> None:
        self._closed = True
        self._schedule.stop()
        self._driver.close()

    def _sync(self) -> None:
        current = self._settings.to_dict()
        if not (self._restoring or self._closed) and current != self._persisted:
            self._persisted = current
            if self._on_settings_changed is not None:
                self._on_settings_changed(copy.deepcopy(self._settings))
        self._publish_status()

    def _publish_status(self) -> None:
        if self._publish is not None:
            self._publish(self.status())
