"""本地配置覆盖示例（存在即由 AppConfig.load 自动加载）。"""

from keepawake.config import AppConfig


def load_config() -> AppConfig:
    return AppConfig(
        idle_tolerance_seconds=2.0,
        failure_threshold=3,
        jitter_ratio=0.2,
        schedule_check_seconds=10.0,
        wake_settle_seconds=2.0,
        relaunch_grace_seconds=1.0,
        recovery_mode="relaunch",
        api_enabled=True,
        api_port=8765,
        log_level="INFO",
        # recovery_mode="restart",
    )
