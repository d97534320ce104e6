"""核心逻辑：合成输入循环、日程与电源门控及其协调。"""

from .activity_driver import ActivityDriver, CycleOutcome
from .channel import CoordinationChannel
from .coordinator import Coordinator, KeepAwakeStatus
from .power_gate import PowerGate
from .schedule_gate import ScheduleGate

__all__ = [
    "ActivityDriver",
    "CycleOutcome",
    "CoordinationChannel",
    "Coordinator",
    "KeepAwakeStatus",
    "PowerGate",
    "ScheduleGate",
]
