"""电池供电时暂停、接回电源后恢复。"""

from __future__ import annotations

import logging
from typing import Callable

from keepawake.adapters.base import PowerSource

logger = logging.getLogger(__name__)


class PowerGate:
    """由系统电源通知驱动，只对 AC/电池状态的真实切换做出反应。"""

    def __init__(
        self,
        power_source: PowerSource,
        emit: Callable[[bool], None],
        is_driver_running: Callable[[], bool],
        pause_on_battery: bool = False,
    ) -> None:
        self._power_source = power_source
        self._emit = emit
        self._is_driver_running = is_driver_running
        self._pause_on_battery = pause_on_battery
        self._on_battery = self._query(False)
        self._resume_pending = False

    @property
    def on_battery(self) -> bool:
        return self._on_battery

    @property
    def pause_on_battery(self) -> bool:
        return self._pause_on_battery

    @property
    def resume_pending(self) -> bool:
        return self._resume_pending

    def set_pause_on_battery(self, enabled: bool) -> None:
        self._pause_on_battery = enabled
        if not enabled:
            self._resume_pending = False

    def handle_power_change(self) -> None:
        on_battery = self._query(self._on_battery)
        if on_battery == self._on_battery:
            return
        self._on_battery = on_battery
        logger.info("电源切换为%s", "电池" if on_battery else "交流电")

        if not self._pause_on_battery:
            return

        if on_battery:
            if self._is_driver_running():
                self._resume_pending = True
                self._emit(True)
            return

        if self._resume_pending:
            self._resume_pending = False
            self._emit(False)

    def cancel_pending_resume(self) -> None:
        self._resume_pending = False

    def defer_resume(self) -> None:
        """暂停期间收到的启动请求留到接回电源时再执行。"""

        if self._pause_on_battery and self._on_battery:
            self._resume_pending = True

    def _query(self, fallback: bool) -> bool:
        try:
            return bool(self._power_source.is_on_battery())
        except Exception:
            logger.warning("读取电源状态失败，沿用上次状态", exc_info=True)
            return fallback
