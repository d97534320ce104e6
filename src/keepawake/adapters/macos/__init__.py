"""macOS 平台适配器。"""

from .idle import MacOSIdleSource
from .input_injector import MacOSEventInjector
from .permissions import ensure_accessibility_permission
from .power import MacOSPowerNotifier, PsutilPowerSource
from .relaunch import ProcessRelauncher
from .session_events import SessionEventListener, register_session_listener
from .sleep_assertion import prevent_display_sleep

__all__ = [
    "MacOSEventInjector",
    "MacOSIdleSource",
    "MacOSPowerNotifier",
    "ProcessRelauncher",
    "PsutilPowerSource",
    "SessionEventListener",
    "ensure_accessibility_permission",
    "prevent_display_sleep",
    "register_session_listener",
]
