"""简易配置存储：每个用户设置都是独立的键，缺失或非法时各自回退默认值。"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from keepawake.config import (
    DEFAULT_WEEKDAY_WINDOW,
    DEFAULT_WEEKEND_WINDOW,
    JiggleInterval,
    ScheduleWindow,
    time_str_to_minutes,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".keepawake" / "settings.json"


@dataclass
class UserSettings:
    running: bool = False
    interval: JiggleInterval = JiggleInterval.THIRTY_SECONDS
    randomize: bool = False
    schedule_enabled: bool = False
    weekday_window: ScheduleWindow = field(default_factory=lambda: DEFAULT_WEEKDAY_WINDOW.model_copy())
    weekend_enabled: bool = False
    weekend_window: ScheduleWindow = field(default_factory=lambda: DEFAULT_WEEKEND_WINDOW.model_copy())
    pause_on_battery: bool = False

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "interval": int(self.interval),
            "randomize": self.randomize,
            "schedule_enabled": self.schedule_enabled,
            "weekday_start": self.weekday_window.start,
            "weekday_stop": self.weekday_window.stop,
            "weekend_enabled": self.weekend_enabled,
            "weekend_start": self.weekend_window.start,
            "weekend_stop": self.weekend_window.stop,
            "pause_on_battery": self.pause_on_battery,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserSettings":
        defaults = cls()

        def read(key: str, parse: Callable[[Any], Any], default: Any) -> Any:
            if key not in data:
                return default
            try:
                return parse(data[key])
            except (TypeError, ValueError):
                logger.warning("设置项 %s 的值 %r 无效，使用默认值", key, data[key])
                return default

        weekday_start = read("weekday_start", _parse_time, defaults.weekday_window.start)
        weekday_stop = read("weekday_stop", _parse_time, defaults.weekday_window.stop)
        weekend_start = read("weekend_start", _parse_time, defaults.weekend_window.start)
        weekend_stop = read("weekend_stop", _parse_time, defaults.weekend_window.stop)

        return cls(
            running=read("running", _parse_bool, defaults.running),
            interval=read("interval", lambda v: JiggleInterval(int(v)), defaults.interval),
            randomize=read("randomize", _parse_bool, defaults.randomize),
            schedule_enabled=read("schedule_enabled", _parse_bool, defaults.schedule_enabled),
            weekday_window=ScheduleWindow(start=weekday_start, stop=weekday_stop),
            weekend_enabled=read("weekend_enabled", _parse_bool, defaults.weekend_enabled),
            weekend_window=ScheduleWindow(start=weekend_start, stop=weekend_stop),
            pause_on_battery=read("pause_on_battery", _parse_bool, defaults.pause_on_battery),
        )


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(value)


def _parse_time(value: Any) -> str:
    if not isinstance(value, str) or time_str_to_minutes(value) is None:
        raise ValueError(value)
    return value


def load_user_settings(path: Optional[Path] = None) -> UserSettings:
    cfg_path = path or DEFAULT_CONFIG_PATH
    try:
        if not cfg_path.exists():
            return UserSettings()
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("无法读取用户设置 %s，使用默认值", cfg_path, exc_info=True)
        return UserSettings()
    if not isinstance(data, dict):
        return UserSettings()
    return UserSettings.from_dict(data)


def save_user_settings(settings: UserSettings, path: Optional[Path] = None) -> None:
    cfg_path = path or DEFAULT_CONFIG_PATH
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(json.dumps(settings.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
