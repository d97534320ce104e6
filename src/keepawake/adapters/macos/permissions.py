"""辅助功能权限检查（仅在 macOS 上生效）。"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def ensure_accessibility_permission(prompt: bool = True) -> bool:
    """检查当前进程能否投递合成事件。

    未授权时 CGEventPost 不会报错，只是事件被系统静默丢弃，
    因此启动时主动检查一次并在需要时弹出系统授权提示。
    """

    try:  # pragma: no cover - 仅在 macOS 可用
        from ApplicationServices import (  # type: ignore
            AXIsProcessTrusted,
            AXIsProcessTrustedWithOptions,
            kAXTrustedCheckOptionPrompt,
        )
    except ImportError:  # pragma: no cover - 非 macOS 或缺少依赖
        return True

    if AXIsProcessTrusted():
        return True

    if prompt:
        AXIsProcessTrustedWithOptions({kAXTrustedCheckOptionPrompt: True})
    logger.warning("未获得辅助功能权限，合成输入将不会生效，请在系统设置中授权")
    return False
