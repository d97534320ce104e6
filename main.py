"""状态栏应用启动入口。"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# 确保 src 加入路径
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from keepawake.adapters.macos import (
    MacOSPowerNotifier,
    ensure_accessibility_permission,
    register_session_listener,
)
from keepawake.config import AppConfig
from keepawake.service import KeepAwakeService, SharedState, start_service_in_thread
from keepawake.ui import create_app, start_api_in_thread
from keepawake.ui.status import run_status_bar_app


def _quit_from_any_thread() -> None:
    import rumps
    from PyObjCTools import AppHelper

    AppHelper.callAfter(rumps.quit_application)


def main() -> None:
    config = AppConfig.load()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    if not ensure_accessibility_permission():
        logger.warning("未获辅助功能授权，合成输入会被系统忽略，自检将触发重启")

    shared_state = SharedState()
    service = KeepAwakeService(shared_state, config=config, terminate=_quit_from_any_thread)
    backend_thread = start_service_in_thread(service)

    if config.api_enabled:
        start_api_in_thread(
            create_app(service),
            config.api_host,
            config.api_port,
            bind_attempts=config.api_bind_attempts,
            retry_seconds=config.api_bind_retry_seconds,
        )

    def handle_power_change() -> None:
        service.notify_power_change()

    def handle_session_event(reason: str) -> None:
        logger.info("系统事件：%s", reason)
        service.notify_system_event(reason)

    power_notifier = MacOSPowerNotifier(handle_power_change)
    power_notifier.start()
    session_listener = register_session_listener(handle_session_event)

    def shutdown() -> None:
        logger.info("退出 KeepAwake")
        power_notifier.stop()
        session_listener.stop()
        service.shutdown()
        backend_thread.join(timeout=2.0)

    run_status_bar_app(service, shared_state.get_status, on_quit=shutdown)


if __name__ == "__main__":
    main()
