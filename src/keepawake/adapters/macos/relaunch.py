"""整进程重启：先拉起新实例，宽限期后结束当前进程。"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from keepawake.adapters.base import RelaunchError
from keepawake.core.scheduling import Scheduler

logger = logging.getLogger(__name__)


def relaunch_command() -> list[str]:
    """打包为 .app 时用 `open -n` 重新打开应用，否则直接重跑当前脚本。"""

    resource_path = os.environ.get("RESOURCEPATH")
    if resource_path:
        bundle = Path(resource_path).resolve().parents[1]
        if bundle.suffix == ".app":
            return ["open", "-n", str(bundle)]
    return [sys.executable, *sys.argv]


class ProcessRelauncher:
    def __init__(
        self,
        scheduler: Scheduler,
        terminate: Callable[[], None],
        grace_seconds: float = 1.0,
        command: Optional[Sequence[str]] = None,
        spawn: Callable[..., object] = subprocess.Popen,
    ) -> None:
        self._scheduler = scheduler
        self._terminate = terminate
        self._grace_seconds = grace_seconds
        self._command = list(command) if command is not None else None
        self._spawn = spawn
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def relaunch(self) -> None:
        if self._pending:
            logger.debug("重启已在进行中")
            return

        command = self._command or relaunch_command()
        try:
            self._spawn(command, close_fds=True, start_new_session=True)
        except OSError as exc:
            raise RelaunchError(f"无法启动新实例: {exc}") from exc

        logger.warning("已启动新实例，%.1f 秒后退出当前进程", self._grace_seconds)
        self._pending = True
        self._scheduler.call_later(self._grace_seconds, self._terminate)
