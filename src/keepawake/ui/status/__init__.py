"""状态栏应用入口。"""

from .status_bar import StatusBarApp, parse_window_input, run_status_bar_app

__all__ = [
    "StatusBarApp",
    "parse_window_input",
    "run_status_bar_app",
]
