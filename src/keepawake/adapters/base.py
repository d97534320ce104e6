"""核心依赖的系统接口，平台实现位于各子包。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ContextManager, Optional, Protocol


@dataclass(frozen=True)
class DisplayBounds:
    """主显示器范围，坐标原点位于左上角。"""

    x: float
    y: float
    width: float
    height: float

    def contains_x(self, value: float) -> bool:
        return self.x <= value < self.x + self.width


class EventInjector(Protocol):
    """合成输入事件及其定位所需的屏幕信息。"""

    def cursor_position(self) -> tuple[float, float]:
        """返回当前光标位置。"""

    def display_bounds(self) -> Optional[DisplayBounds]:
        """返回主显示器范围，未知时返回 None。"""

    def move_cursor(self, x: float, y: float) -> None:
        """发送一次鼠标移动事件。"""

    def tap_modifier(self) -> None:
        """按下并松开一个无默认绑定的修饰键。"""


class IdleSource(Protocol):
    def idle_seconds(self) -> float:
        """系统报告的距上次输入的秒数。"""


class PowerSource(Protocol):
    def is_on_battery(self) -> bool:
        """当前是否由电池供电。"""


class SleepAssertionFactory(Protocol):
    def __call__(self) -> ContextManager[object]:
        """返回持有“阻止显示器闲置休眠”断言的上下文。"""


class RelaunchError(RuntimeError):
    """无法启动替代进程。"""


class Relauncher(Protocol):
    def relaunch(self) -> None:
        """启动新实例并在短暂延迟后结束当前进程，启动失败时抛出异常。"""
