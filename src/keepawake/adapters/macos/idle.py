"""macOS 系统空闲时长。"""

from __future__ import annotations

try:  # pragma: no cover - 平台判定
    import Quartz
except ImportError:  # pragma: no cover - 非 macOS 环境
    Quartz = None  # type: ignore


class MacOSIdleSource:
    """读取合并会话状态下任意输入事件以来的秒数。"""

    def __init__(self) -> None:
        if Quartz is None:
            raise RuntimeError("当前环境缺少 Quartz，无法读取空闲时间")

    def idle_seconds(self) -> float:
        return float(
            Quartz.CGEventSourceSecondsSinceLastEventType(
                Quartz.kCGEventSourceStateCombinedSessionState,
                Quartz.kCGAnyInputEventType,
            )
        )
