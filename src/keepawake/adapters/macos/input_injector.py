"""macOS 合成键鼠事件实现。"""

from __future__ import annotations

import logging
from typing import Optional

try:  # pragma: no cover - 平台判定
    import Quartz
except ImportError:  # pragma: no cover - 非 macOS 环境
    Quartz = None  # type: ignore

from keepawake.adapters.base import DisplayBounds

logger = logging.getLogger(__name__)

# kVK_RightShift：单独按下不会触发任何系统快捷键
RIGHT_SHIFT_KEY_CODE = 0x3C


class MacOSEventInjector:
    """通过 CGEventPost 向 HID 事件流投递鼠标移动与修饰键。"""

    def __init__(self, key_code: int = RIGHT_SHIFT_KEY_CODE) -> None:
        if Quartz is None:
            raise RuntimeError("当前环境缺少 Quartz，无法发送合成事件")
        self._key_code = key_code

    def cursor_position(self) -> tuple[float, float]:
        event = Quartz.CGEventCreate(None)
        location = Quartz.CGEventGetLocation(event)
        return float(location.x), float(location.y)

    def display_bounds(self) -> Optional[DisplayBounds]:
        bounds = Quartz.CGDisplayBounds(Quartz.CGMainDisplayID())
        if bounds.size.width <= 0 or bounds.size.height <= 0:
            logger.debug("未能获取主显示器尺寸")
            return None
        return DisplayBounds(
            x=float(bounds.origin.x),
            y=float(bounds.origin.y),
            width=float(bounds.size.width),
            height=float(bounds.size.height),
        )

    def move_cursor(self, x: float, y: float) -> None:
        event = Quartz.CGEventCreateMouseEvent(
            None,
            Quartz.kCGEventMouseMoved,
            (x, y),
            Quartz.kCGMouseButtonLeft,
        )
        Quartz.CGEventPost(Quartz.kCGHIDEventTap, event)

    def tap_modifier(self) -> None:
        for key_down in (True, False):
            event = Quartz.CGEventCreateKeyboardEvent(None, self._key_code, key_down)
            Quartz.CGEventPost(Quartz.kCGHIDEventTap, event)
