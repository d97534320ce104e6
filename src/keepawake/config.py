"""应用配置模型。"""

from __future__ import annotations

import importlib.util
from enum import IntEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class JiggleInterval(IntEnum):
    """可选的基础触发周期（秒）。"""

    THIRTY_SECONDS = 30
    ONE_MINUTE = 60
    TWO_MINUTES = 120
    FIVE_MINUTES = 300

    @property
    def label(self) -> str:
        labels = {
            JiggleInterval.THIRTY_SECONDS: "30 秒",
            JiggleInterval.ONE_MINUTE: "1 分钟",
            JiggleInterval.TWO_MINUTES: "2 分钟",
            JiggleInterval.FIVE_MINUTES: "5 分钟",
        }
        return labels[self]

    @property
    def seconds(self) -> float:
        return float(self.value)


def time_str_to_minutes(value: str) -> int | None:
    """将 ``HH:MM`` 转换为当天分钟数，格式非法时返回 None。"""

    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return hour * 60 + minute


class ScheduleWindow(BaseModel):
    """单个时间窗口，start > stop 表示跨越午夜。"""

    start: str = "09:00"
    stop: str = "17:00"

    @field_validator("start", "stop")
    @classmethod
    def _check_time(cls, value: str) -> str:
        minutes = time_str_to_minutes(value)
        if minutes is None:
            raise ValueError(f"时间格式应为 HH:MM，收到 {value!r}")
        return f"{minutes // 60:02d}:{minutes % 60:02d}"

    @property
    def start_minute(self) -> int:
        return time_str_to_minutes(self.start) or 0

    @property
    def stop_minute(self) -> int:
        return time_str_to_minutes(self.stop) or 0

    def contains(self, minute_of_day: int) -> bool:
        start, stop = self.start_minute, self.stop_minute
        if start <= stop:
            return start <= minute_of_day < stop
        # overnight
        return minute_of_day >= start or minute_of_day < stop


DEFAULT_WEEKDAY_WINDOW = ScheduleWindow(start="09:00", stop="17:00")
DEFAULT_WEEKEND_WINDOW = ScheduleWindow(start="10:00", stop="14:00")


class AppConfig(BaseModel):
    """运行参数，用户开关见 ``config_store.UserSettings``。"""

    idle_tolerance_seconds: float = Field(2.0, gt=0.0)
    failure_threshold: int = Field(3, ge=1)
    jitter_ratio: float = Field(0.2, ge=0.0, lt=1.0)
    max_pixel_offset: int = Field(3, ge=1)
    schedule_check_seconds: float = Field(10.0, gt=0.0)
    wake_settle_seconds: float = Field(2.0, ge=0.0)
    relaunch_grace_seconds: float = Field(1.0, ge=0.0)
    recovery_mode: Literal["relaunch", "restart"] = "relaunch"
    api_enabled: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = Field(8765, ge=1, le=65535)
    api_bind_attempts: int = Field(10, ge=1)
    api_bind_retry_seconds: float = Field(0.5, ge=0.0)
    log_level: str = "INFO"

    @classmethod
    def load_default(cls) -> "AppConfig":
        return cls()

    @classmethod
    def load(cls) -> "AppConfig":
        """优先尝试加载项目根目录的 `config.local.py`，否则返回默认配置。"""

        root_dir = Path(__file__).resolve().parents[2]
        local_path = root_dir / "config.local.py"
        if not local_path.exists():
            return cls.load_default()

        spec = importlib.util.spec_from_file_location("config_local", local_path)
        if spec is None or spec.loader is None:
            return cls.load_default()

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)  # type: ignore[arg-type]
        except Exception:
            return cls.load_default()

        load_fn = getattr(module, "load_config", None)
        if callable(load_fn):
            try:
                return load_fn()
            except Exception:
                return cls.load_default()
        return cls.load_default()
