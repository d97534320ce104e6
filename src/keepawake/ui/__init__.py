"""用户界面：HTTP 控制接口与状态栏。"""

from .server import create_app, start_api_in_thread

__all__ = [
    "create_app",
    "start_api_in_thread",
]
