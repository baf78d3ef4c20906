"""
Chat Engine

Runtime services shared by the chat game: the typed event bus, the
cooperative task scheduler, audio cues and session configuration.
"""

__version__ = "0.1.0"

from chatengine.core import (
    EventBus,
    Event,
    ChatEvent,
    AudioEvent,
    TaskScheduler,
    Task,
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
    "Signal",
    "WaitSeconds",
    "WaitForSignal",
]
