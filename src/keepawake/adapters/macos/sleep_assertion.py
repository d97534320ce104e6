"""“阻止显示器闲置休眠”断言，以 caffeinate 子进程的生命周期表示。"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def prevent_display_sleep() -> Iterator[Optional[subprocess.Popen]]:
    """进入时启动 `caffeinate -d`，退出时结束它；失败只记录日志。

    `-w` 绑定当前进程 PID，进程异常退出时断言随之释放。
    """

    executable = shutil.which("caffeinate")
    if executable is None:
        logger.warning("未找到 caffeinate，无法阻止显示器休眠")
        yield None
        return

    try:
        proc: Optional[subprocess.Popen] = subprocess.Popen(
            [executable, "-d", "-w", str(os.getpid())],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        logger.warning("启动 caffeinate 失败", exc_info=True)
        proc = None
    else:
        logger.debug("已获取防休眠断言 (PID %s)", proc.pid)

    try:
        yield proc
    finally:
        if proc is not None:
            _terminate(proc)


def _terminate(proc: subprocess.Popen) -> None:
    """发送 SIGTERM 后立即返回，不在事件循环线程上等待子进程。"""

    if proc.poll() is not None:
        return
    try:
        proc.terminate()
    except OSError:
        logger.warning("释放防休眠断言失败", exc_info=True)
        return
    if proc.poll() is None:
        # 未回收的 Popen 由 subprocess 在后续调用中清理
        logger.debug("已通知 caffeinate 退出 (PID %s)", proc.pid)
    else:
        logger.debug("已释放防休眠断言")
