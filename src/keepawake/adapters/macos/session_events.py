"""系统唤醒与屏幕解锁通知。"""

from __future__ import annotations

import logging
from typing import Callable

try:  # pragma: no cover - 仅在 macOS GUI 环境下可用
    import objc  # type: ignore
    from Foundation import NSDistributedNotificationCenter, NSObject  # type: ignore
except ImportError:  # pragma: no cover - 测试环境/非 GUI 环境
    objc = None  # type: ignore
    NSDistributedNotificationCenter = None  # type: ignore
    NSObject = None  # type: ignore

logger = logging.getLogger(__name__)

SCREEN_UNLOCKED_NOTIFICATION = "com.apple.screenIsUnlocked"


if objc is not None and NSObject is not None:  # pragma: no cover

    class _UnlockObserver(NSObject):
        """接收分布式通知并转交给 Python 回调。"""

        def initWithCallback_(self, callback):  # type: ignore[override]
            self = objc.super(_UnlockObserver, self).init()
            if self is None:
                return None
            self._callback = callback
            return self

        def screenUnlocked_(self, _notification):  # type: ignore[override]
            try:
                self._callback()
            except Exception:
                logger.error("处理屏幕解锁事件失败", exc_info=True)

else:  # pragma: no cover - 非 GUI 环境无需观察者

    _UnlockObserver = None  # type: ignore


class SessionEventListener:
    """唤醒走 rumps.events，解锁走 NSDistributedNotificationCenter。"""

    def __init__(self, on_event: Callable[[str], None]) -> None:
        self._on_event = on_event
        self._unlock_observer = None

    def start(self) -> None:
        self._register_wake()
        self._register_unlock()

    def stop(self) -> None:
        if self._unlock_observer is None or NSDistributedNotificationCenter is None:
            return
        center = NSDistributedNotificationCenter.defaultCenter()
        center.removeObserver_(self._unlock_observer)
        self._unlock_observer = None

    def _register_wake(self) -> None:
        try:
            import rumps.events as events
        except ImportError:  # pragma: no cover - rumps 版本不支持事件
            logger.warning("当前 rumps 不支持系统事件，唤醒后不会自动重启")
            return
        events.on_wake(self._handle_wake)

    def _register_unlock(self) -> None:
        if _UnlockObserver is None or NSDistributedNotificationCenter is None:
            logger.warning("当前环境缺少 Foundation，无法监听屏幕解锁")
            return
        observer = _UnlockObserver.alloc().initWithCallback_(lambda: self._emit("unlock"))
        center = NSDistributedNotificationCenter.defaultCenter()
        center.addObserver_selector_name_object_(
            observer,
            objc.selector(_UnlockObserver.screenUnlocked_, signature=b"v@:@"),
            SCREEN_UNLOCKED_NOTIFICATION,
            None,
        )
        self._unlock_observer = observer

    def _handle_wake(self, *_args, **_kwargs) -> None:
        self._emit("wake")

    def _emit(self, reason: str) -> None:
        try:
            self._on_event(reason)
        except Exception:  # pragma: no cover - 回调异常不影响主循环
            logger.error("处理系统事件 %s 失败", reason, exc_info=True)


def register_session_listener(on_event: Callable[[str], None]) -> SessionEventListener:
    listener = SessionEventListener(on_event)
    listener.start()
    return listener
