"""协调通道：开关、日程与电源信号统一排队，按到达顺序串行处理。"""

from __future__ import annotations

import collections
import logging
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Type

from keepawake.config import JiggleInterval, ScheduleWindow

logger = logging.getLogger(__name__)


class Message:
    """所有协调消息的基类。"""


@dataclass(frozen=True)
class ToggleRun(Message):
    """用户手动开启/关闭。"""

    running: bool


@dataclass(frozen=True)
class SetInterval(Message):
    interval: JiggleInterval


@dataclass(frozen=True)
class SetRandomize(Message):
    randomize: bool


@dataclass(frozen=True)
class SetScheduleEnabled(Message):
    enabled: bool


@dataclass(frozen=True)
class SetScheduleWindows(Message):
    weekday: ScheduleWindow
    weekend: ScheduleWindow
    weekend_enabled: bool


@dataclass(frozen=True)
class SetPauseOnBattery(Message):
    enabled: bool


@dataclass(frozen=True)
class ScheduleSignal(Message):
    """日程门控的期望状态；refresh 表示唤醒后的强制重发。"""

    inside: bool
    refresh: bool = False


@dataclass(frozen=True)
class PowerSourceChanged(Message):
    """系统电源变化通知，具体状态由 PowerGate 重新查询。"""


@dataclass(frozen=True)
class PowerSignal(Message):
    """电源门控的期望动作：pause=True 暂停，False 恢复。"""

    pause: bool


@dataclass(frozen=True)
class SystemWake(Message):
    """系统唤醒或屏幕解锁。"""

    reason: str = "wake"


@dataclass(frozen=True)
class Shutdown(Message):
    pass


Handler = Callable[[Message], None]


class CoordinationChannel:
    """FIFO 消息总线。

    只能在所属事件循环线程上调用 post；处理过程中再次 post 的消息会排到队尾，
    不会嵌套执行，因此后写入者总是最后生效。
    """

    def __init__(self) -> None:
        self._queue: Deque[Message] = collections.deque()
        self._handlers: Dict[Type[Message], List[Handler]] = {}
        self._draining = False
        self._after_drain: Optional[Callable[[], None]] = None

    def subscribe(self, message_type: Type[Message], handler: Handler) -> None:
        self._handlers.setdefault(message_type, []).append(handler)

    def on_drained(self, callback: Optional[Callable[[], None]]) -> None:
        """每批消息处理完成后调用一次。"""

        self._after_drain = callback

    def post(self, message: Message) -> None:
        self._queue.append(message)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self._dispatch(self._queue.popleft())
        finally:
            self._draining = False
        if self._after_drain is not None:
            self._after_drain()

    def pending(self) -> int:
        return len(self._queue)

    def _dispatch(self, message: Message) -> None:
        handlers = self._handlers.get(type(message), [])
        if not handlers:
            logger.debug("消息 %s 没有订阅者", type(message).__name__)
            return
        for handler in handlers:
            try:
                handler(message)
            except Exception:
                logger.exception("处理消息 %r 失败", message)
