"""后台事件循环与状态栏/HTTP 接口之间的桥接。"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from keepawake.adapters.base import (
    EventInjector,
    IdleSource,
    PowerSource,
    Relauncher,
    SleepAssertionFactory,
)
from keepawake.adapters.macos import (
    MacOSEventInjector,
    MacOSIdleSource,
    ProcessRelauncher,
    PsutilPowerSource,
    prevent_display_sleep,
)
from keepawake.config import AppConfig, JiggleInterval, ScheduleWindow
from keepawake.config_store import UserSettings, load_user_settings, save_user_settings
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
from keepawake.core.coordinator import Coordinator, KeepAwakeStatus
from keepawake.core.power_gate import PowerGate
from keepawake.core.schedule_gate import ScheduleGate
from keepawake.core.scheduling import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)


@dataclass
class SharedState:
    """共享状态，状态栏与 HTTP 接口轮询读取最新快照。"""

    status: Optional[KeepAwakeStatus] = None
    version: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def set_status(self, status: KeepAwakeStatus) -> None:
        with self._lock:
            self.status = status
            self.version += 1

    def get_status(self) -> Optional[KeepAwakeStatus]:
        with self._lock:
            return self.status

    def get_version(self) -> int:
        with self._lock:
            return self.version


@dataclass
class PlatformBindings:
    """核心依赖的系统能力。"""

    injector: EventInjector
    idle_source: IdleSource
    power_source: PowerSource
    assertion_factory: SleepAssertionFactory


def macos_platform() -> PlatformBindings:
    return PlatformBindings(
        injector=MacOSEventInjector(),
        idle_source=MacOSIdleSource(),
        power_source=PsutilPowerSource(),
        assertion_factory=prevent_display_sleep,
    )


def _exit_process() -> None:
    # 新实例已启动，直接退出，防休眠断言随 caffeinate -w 一并释放
    os._exit(0)


class KeepAwakeService:
    """在独立 asyncio 循环中运行核心组件，其他线程只能通过 submit 发消息。"""

    def __init__(
        self,
        shared: SharedState,
        config: Optional[AppConfig] = None,
        platform: Optional[PlatformBindings] = None,
        settings_path: Optional[Path] = None,
        terminate: Callable[[], None] = _exit_process,
        relauncher_factory: Optional[Callable[[Scheduler, Callable[[], None]], Relauncher]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._shared = shared
        self._config = config or AppConfig.load()
        self._platform = platform
        self._settings_path = settings_path
        self._terminate = terminate
        self._relauncher_factory = relauncher_factory
        self._rng = rng
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._coordinator: Optional[Coordinator] = None
        self._stopped: Optional[asyncio.Event] = None
        self._ready = threading.Event()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def ready(self) -> threading.Event:
        return self._ready

    async def run(self) -> None:
        """构建组件、恢复设置，并一直运行到 shutdown。"""

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._stopped = asyncio.Event()
        coordinator = self._build(AsyncioScheduler(loop))
        self._coordinator = coordinator

        coordinator.restore(load_user_settings(self._settings_path))
        self._ready.set()
        try:
            await self._stopped.wait()
        finally:
            coordinator.post(Shutdown())
            self._coordinator = None

    def submit(self, message: Message, wait: bool = False, timeout: float = 2.0) -> None:
        """线程安全地投递消息；wait=True 时等待消息处理完成。"""

        loop = self._loop
        if loop is None or not self._ready.is_set():
            raise RuntimeError("服务尚未启动")
        if not wait:
            loop.call_soon_threadsafe(self._post, message)
            return
        future = asyncio.run_coroutine_threadsafe(self._apply(message), loop)
        future.result(timeout)

    def shutdown(self) -> None:
        loop = self._loop
        if loop is None or self._stopped is None:
            return
        loop.call_soon_threadsafe(self._stopped.set)

    def set_running(self, running: bool, wait: bool = False) -> None:
        self.submit(ToggleRun(running), wait=wait)

    def set_interval(self, interval: JiggleInterval, wait: bool = False) -> None:
        self.submit(SetInterval(interval), wait=wait)

    def set_randomize(self, randomize: bool, wait: bool = False) -> None:
        self.submit(SetRandomize(randomize), wait=wait)

    def set_schedule_enabled(self, enabled: bool, wait: bool = False) -> None:
        self.submit(SetScheduleEnabled(enabled), wait=wait)

    def set_schedule_windows(
        self,
        weekday: ScheduleWindow,
        weekend: ScheduleWindow,
        weekend_enabled: bool,
        wait: bool = False,
    ) -> None:
        self.submit(SetScheduleWindows(weekday, weekend, weekend_enabled), wait=wait)

    def set_pause_on_battery(self, enabled: bool, wait: bool = False) -> None:
        self.submit(SetPauseOnBattery(enabled), wait=wait)

    def notify_power_change(self) -> None:
        self.submit(PowerSourceChanged())

    def notify_system_event(self, reason: str) -> None:
        self.submit(SystemWake(reason))

    def get_status(self) -> Optional[KeepAwakeStatus]:
        return self._shared.get_status()

    def _build(self, scheduler: Scheduler) -> Coordinator:
        platform = self._platform or macos_platform()
        channel = CoordinationChannel()

        def terminate() -> None:
            channel.post(Shutdown())
            self._terminate()

        if self._relauncher_factory is not None:
            relauncher = self._relauncher_factory(scheduler, terminate)
        else:
            relauncher = ProcessRelauncher(
                scheduler,
                terminate,
                grace_seconds=self._config.relaunch_grace_seconds,
            )

        driver = ActivityDriver(
            scheduler,
            injector=platform.injector,
            idle_source=platform.idle_source,
            relauncher=relauncher,
            assertion_factory=platform.assertion_factory,
            config=self._config,
            rng=self._rng,
        )
        schedule_gate = ScheduleGate(
            scheduler,
            emit=lambda inside, refresh: channel.post(ScheduleSignal(inside, refresh)),
            check_interval=self._config.schedule_check_seconds,
        )
        power_gate = PowerGate(
            platform.power_source,
            emit=lambda pause: channel.post(PowerSignal(pause)),
            is_driver_running=lambda: driver.is_running,
        )
        return Coordinator(
            channel,
            driver,
            schedule_gate,
            power_gate,
            publish=self._shared.set_status,
            on_settings_changed=self._persist,
        )

    def _persist(self, settings: UserSettings) -> None:
        try:
            save_user_settings(settings, self._settings_path)
        except OSError:
            logger.warning("无法写入用户设置", exc_info=True)

    def _post(self, message: Message) -> None:
        if self._coordinator is None:
            logger.debug("服务已停止，丢弃消息 %r", message)
            return
        self._coordinator.post(message)

    async def _apply(self, message: Message) -> None:
        self._post(message)


def start_service_in_thread(service: KeepAwakeService, timeout: float = 5.0) -> threading.Thread:
    """在独立线程运行 asyncio 后台服务，并等待组件就绪。"""

    loop = asyncio.new_event_loop()

    def _run() -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(service.run())
        finally:
            loop.close()

    thread = threading.Thread(target=_run, name="keepawake-backend", daemon=True)
    thread.start()
    if not service.ready.wait(timeout):
        logger.error("后台服务在 %.1f 秒内未就绪", timeout)
    return thread
