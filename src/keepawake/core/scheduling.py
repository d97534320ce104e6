"""定时器抽象：核心组件只依赖 now() 与 call_later()。"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """取消尚未触发的回调。"""


class Scheduler(Protocol):
    """单线程调度接口，所有回调都在同一协调上下文中执行。"""

    def now(self) -> float:
        """返回单调时钟秒数。"""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """在 delay 秒后调用 callback。"""


class AsyncioScheduler:
    """基于 asyncio 事件循环的实现。"""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)
