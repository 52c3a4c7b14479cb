# mppt/controller/__init__.py
from .supervisor import Supervisor, SupervisorConfig
from .psd import PSDDetector
from .safety import SafetyLimits, check_limits
from .loop import ControlLoop, LoopResult
__all__ = [
    "Supervisor", "SupervisorConfig",
    "PSDDetector", "SafetyLimits", "check_limits",
    "ControlLoop", "LoopResult",
]
