"""电源状态读取与变化通知。"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
from typing import Callable, Optional

import psutil

try:  # pragma: no cover - 平台判定
    import objc
    import Quartz
except ImportError:  # pragma: no cover - 非 macOS 环境
    objc = None  # type: ignore
    Quartz = None  # type: ignore

logger = logging.getLogger(__name__)

_POWER_CALLBACK = ctypes.CFUNCTYPE(None, ctypes.c_void_p)


class PsutilPowerSource:
    """没有电池的机器视为始终接入交流电。"""

    def is_on_battery(self) -> bool:
        battery = psutil.sensors_battery()
        if battery is None:
            return False
        return battery.power_plugged is False


class MacOSPowerNotifier:
    """订阅 IOKit 电源变化通知，回调运行在主线程的 run loop 上。"""

    def __init__(self, on_change: Callable[[], None]) -> None:
        self._on_change = on_change
        self._callback = _POWER_CALLBACK(self._handle_notification)
        self._source = None
        self._run_loop = None

    def start(self) -> bool:
        if self._source is not None:
            return True
        if objc is None or Quartz is None:
            logger.error("当前环境缺少 pyobjc，无法监听电源变化")
            return False

        library = ctypes.util.find_library("IOKit")
        if library is None:
            logger.error("未找到 IOKit，无法监听电源变化")
            return False

        iokit = ctypes.cdll.LoadLibrary(library)
        create_source = iokit.IOPSNotificationCreateRunLoopSource
        create_source.restype = ctypes.c_void_p
        create_source.argtypes = [_POWER_CALLBACK, ctypes.c_void_p]

        pointer: Optional[int] = create_source(self._callback, None)
        if not pointer:
            logger.error("创建电源通知失败")
            return False

        self._source = objc.objc_object(c_void_p=pointer)
        self._run_loop = Quartz.CFRunLoopGetMain()
        Quartz.CFRunLoopAddSource(self._run_loop, self._source, Quartz.kCFRunLoopDefaultMode)
        logger.info("电源变化监听已启动")
        return True

    def stop(self) -> None:
        if self._source is None:
            return
        Quartz.CFRunLoopRemoveSource(self._run_loop, self._source, Quartz.kCFRunLoopDefaultMode)
        self._source = None
        self._run_loop = None

    def _handle_notification(self, _context) -> None:  # pragma: no cover - 回调由 macOS 调用
        try:
            self._on_change()
        except Exception:
            logger.error("处理电源变化通知失败", exc_info=True)
