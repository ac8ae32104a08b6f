"""Control module - pod lifecycle state machine and idle cleanup."""

from podhub.control.lifecycle import LifecycleController
from podhub.control.reaper import IdleReaper
from podhub.control.registry import TimerRegistry

__all__ = [
    "IdleReaper",
    "LifecycleController",
    "TimerRegistry",
]
