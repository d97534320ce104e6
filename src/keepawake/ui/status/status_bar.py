"""基于 rumps 的 macOS 状态栏：只负责展示状态并调用核心开关。"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import rumps

from keepawake.config import JiggleInterval, ScheduleWindow, time_str_to_minutes
from keepawake.core.coordinator import KeepAwakeStatus
from keepawake.ui.server import ServiceControls

logger = logging.getLogger(__name__)

RUNNING_TITLE = "☕"
STOPPED_TITLE = "💤"


def parse_window_input(text: str) -> Optional[ScheduleWindow]:
    """解析 ``HH:MM-HH:MM``，格式错误时返回 None。"""

    text = text.strip()
    if "-" not in text:
        return None
    start, stop = (part.strip() for part in text.split("-", 1))
    if time_str_to_minutes(start) is None or time_str_to_minutes(stop) is None:
        return None
    return ScheduleWindow(start=start, stop=stop)


class StatusBarApp(rumps.App):
    """状态栏应用，周期性读取后台状态。"""

    def __init__(
        self,
        service: ServiceControls,
        status_provider: Callable[[], Optional[KeepAwakeStatus]],
        on_quit: Optional[Callable[[], None]] = None,
    ) -> None:
        _ensure_info_plist()
        super().__init__(name="KeepAwake", title=STOPPED_TITLE, quit_button=None)
        self._service = service
        self._status_provider = status_provider
        self._on_quit = on_quit

        self._state_item = rumps.MenuItem("状态：--")
        self._run_item = rumps.MenuItem("保持唤醒", callback=self._handle_toggle_run)
        self._interval_menu = rumps.MenuItem("触发间隔")
        self._interval_items: dict[JiggleInterval, rumps.MenuItem] = {}
        for interval in JiggleInterval:
            item = rumps.MenuItem(interval.label, callback=self._make_interval_handler(interval))
            self._interval_items[interval] = item
            self._interval_menu.add(item)
        self._randomize_item = rumps.MenuItem("随机间隔与位移", callback=self._handle_randomize)

        self._schedule_menu = rumps.MenuItem("日程")
        self._schedule_item = rumps.MenuItem("启用日程", callback=self._handle_schedule_enabled)
        self._weekday_item = rumps.MenuItem("工作日：--", callback=self._handle_edit_weekday)
        self._weekend_enabled_item = rumps.MenuItem("周末也运行", callback=self._handle_weekend_enabled)
        self._weekend_item = rumps.MenuItem("周末：--", callback=self._handle_edit_weekend)
        for item in (self._schedule_item, self._weekday_item, self._weekend_enabled_item, self._weekend_item):
            self._schedule_menu.add(item)

        self._battery_item = rumps.MenuItem("电池供电时暂停", callback=self._handle_pause_on_battery)

        self.menu = [
            self._state_item,
            None,
            self._run_item,
            self._interval_menu,
            self._randomize_item,
            self._schedule_menu,
            self._battery_item,
            None,
            rumps.MenuItem("退出", callback=self._quit_app),
        ]
        self._poll_timer = rumps.Timer(self._refresh, 1.0)
        self._last_status: Optional[KeepAwakeStatus] = None

    def run(self, *args, **kwargs):  # type: ignore[override]
        self._poll_timer.start()
        super().run(*args, **kwargs)

    def _refresh(self, _timer: rumps.Timer) -> None:
        status = self._status_provider()
        if status is None:
            return
        self._last_status = status
        self.title = RUNNING_TITLE if status.running else STOPPED_TITLE
        self._state_item.title = self._state_label(status)
        self._run_item.state = 1 if status.running else 0
        for interval, item in self._interval_items.items():
            item.state = 1 if interval == status.interval else 0
        self._randomize_item.state = 1 if status.randomize else 0
        self._schedule_item.state = 1 if status.schedule_enabled else 0
        self._weekday_item.title = f"工作日：{status.weekday_window.start}-{status.weekday_window.stop}"
        self._weekend_enabled_item.state = 1 if status.weekend_enabled else 0
        self._weekend_item.title = f"周末：{status.weekend_window.start}-{status.weekend_window.stop}"
        self._battery_item.state = 1 if status.pause_on_battery else 0

    def _state_label(self, status: KeepAwakeStatus) -> str:
        if status.relaunch_requested:
            return "状态：正在重启…"
        if status.power_paused:
            return "状态：电池供电，已暂停"
        if status.running:
            return "状态：运行中"
        return "状态：已停止"

    def _handle_toggle_run(self, sender: rumps.MenuItem) -> None:
        self._service.set_running(not sender.state)

    def _make_interval_handler(self, interval: JiggleInterval) -> Callable[[rumps.MenuItem], None]:
        def _handler(_sender: rumps.MenuItem) -> None:
            self._service.set_interval(interval)

        return _handler

    def _handle_randomize(self, sender: rumps.MenuItem) -> None:
        self._service.set_randomize(not sender.state)

    def _handle_schedule_enabled(self, sender: rumps.MenuItem) -> None:
        self._service.set_schedule_enabled(not sender.state)

    def _handle_weekend_enabled(self, sender: rumps.MenuItem) -> None:
        status = self._last_status
        if status is None:
            return
        self._service.set_schedule_windows(status.weekday_window, status.weekend_window, not sender.state)

    def _handle_edit_weekday(self, _sender: rumps.MenuItem) -> None:
        status = self._last_status
        if status is None:
            return
        window = self._prompt_window("工作日运行时段", status.weekday_window)
        if window is not None:
            self._service.set_schedule_windows(window, status.weekend_window, status.weekend_enabled)

    def _handle_edit_weekend(self, _sender: rumps.MenuItem) -> None:
        status = self._last_status
        if status is None:
            return
        window = self._prompt_window("周末运行时段", status.weekend_window)
        if window is not None:
            self._service.set_schedule_windows(status.weekday_window, window, True)

    def _handle_pause_on_battery(self, sender: rumps.MenuItem) -> None:
        self._service.set_pause_on_battery(not sender.state)

    def _prompt_window(self, title: str, current: ScheduleWindow) -> Optional[ScheduleWindow]:
        window = rumps.Window(
            message="格式 HH:MM-HH:MM，开始晚于结束表示跨越午夜，例如 22:00-06:00",
            title=title,
            default_text=f"{current.start}-{current.stop}",
            ok="保存",
            cancel="取消",
            dimensions=(200, 24),
        )
        window.icon = None
        response = window.run()
        if response.clicked != 1:
            return None
        parsed = parse_window_input(response.text)
        if parsed is None:
            rumps.alert("时段格式错误", "请使用 HH:MM-HH:MM 形式。")
        return parsed

    def _quit_app(self, _sender: rumps.MenuItem) -> None:
        if self._on_quit is not None:
            try:
                self._on_quit()
            except Exception:  # pragma: no cover - 退出流程不应被回调阻断
                logger.error("退出前清理失败", exc_info=True)
        rumps.quit_application()


def run_status_bar_app(
    service: ServiceControls,
    status_provider: Callable[[], Optional[KeepAwakeStatus]],
    on_quit: Optional[Callable[[], None]] = None,
) -> None:
    app = StatusBarApp(service, status_provider, on_quit=on_quit)
    app.run()


def _ensure_info_plist() -> None:
    """确保可执行目录存在 Info.plist，rumps 需要它来识别应用。"""

    executable = Path(sys.executable)
    plist_path = executable.with_name("Info.plist")
    if plist_path.exists():
        return

    plist_contents = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleIdentifier</key>
    <string>com.keepawake.agent</string>
    <key>CFBundleName</key>
    <string>KeepAwake</string>
</dict>
</plist>
"""

    try:
        plist_path.write_text(plist_contents, encoding="utf-8")
    except OSError as exc:  # pragma: no cover - IO 失败
        logger.warning("无法写入 Info.plist: %s", exc)
