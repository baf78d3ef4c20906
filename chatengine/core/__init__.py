"""
Core engine module.

Exports:
- EventBus, Event, ChatEvent, AudioEvent: Event system
- TaskScheduler, Task, Signal, WaitSeconds, WaitForSignal: Cooperative tasks
"""

from chatengine.core.events import EventBus, Event, ChatEvent, AudioEvent
from chatengine.core.tasks import (
    TaskScheduler,
    Task,
    TimerHandle,
    Signal,
    WaitSeconds,
    WaitForSignal,
)

__all__ = [
    # Events
    "EventBus",
    "Event",
    "ChatEvent",
    "AudioEvent",
    # Tasks
    "TaskScheduler",
    "Task",
    "TimerHandle",
    "Signal",
    "WaitSeconds",
    "WaitForSignal",
]
