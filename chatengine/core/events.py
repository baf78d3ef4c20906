"""
Typed event bus for decoupled communication.

Uses Enums for event types to prevent magic strings. The dialogue
interpreter, timers, audio and result presentation only talk to each
other through this bus.

Usage:
    # Subscribe
    event_bus.subscribe(ChatEvent.DIALOG_END, on_dialog_end)

    # Publish
    event_bus.publish(ChatEvent.DIALOG_START, node_id=1001)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class ChatEvent(Enum):
    """Dialogue and game-flow events."""
    DIALOG_START = auto()       # node_id
    DIALOG_END = auto()         # node_id
    CONSEQUENCE_POPUP = auto()  # text
    GAME_WIN = auto()
    GAME_FAIL = auto()


class AudioEvent(Enum):
    """Audio system events."""
    SFX_PLAYED = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Dictionary of event-specific data
        consumed: Whether the event has been handled
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get event data by key."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get event data by key (dict-style)."""
        return self.data[key]


# Type alias for event handlers
EventHandler = Callable[[Event], None]


@dataclass(eq=False)
class _Subscription:
    """One handler registered for one event type."""
    priority: int
    handler_ref: Any
    one_shot: bool = False
    active: bool = True

    def resolve(self) -> EventHandler | None:
        """The live handler, or None once a weak target is gone."""
        if isinstance(self.handler_ref, (ref, WeakMethod)):
            return self.handler_ref()
        return self.handler_ref


class EventBus:
    """
    Publish/subscribe hub keyed by event enums.

    Handlers run in priority order (highest first, ties in subscription
    order) and are held weakly by default so a discarded listener drops
    out on its own. A one-shot handler is removed before it runs. A
    handler may consume() the event to stop the remaining handlers.

    Dispatch is synchronous: every handler has run by the time publish()
    returns, including for events published from inside a handler.
    """

    def __init__(self):
        self._subscriptions: dict[Enum, list[_Subscription]] = {}

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Register a handler.

        Args:
            event_type: Enum member to listen for
            handler: Callable taking the Event
            priority: Higher runs first
            one_shot: Drop the handler after its first call
            weak: Hold the handler by weak reference
        """
        if not weak:
            handler_ref = handler
        elif hasattr(handler, '__self__'):
            handler_ref = WeakMethod(handler)
        else:
            handler_ref = ref(handler)

        subs = self._subscriptions.setdefault(event_type, [])
        position = len(subs)
        for i, existing in enumerate(subs):
            if priority > existing.priority:
                position = i
                break
        subs.insert(position, _Subscription(priority, handler_ref, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        """Remove every registration of handler for event_type."""
        subs = self._subscriptions.get(event_type)
        if not subs:
            return

        kept = []
        for sub in subs:
            if sub.resolve() == handler:
                sub.active = False
            else:
                kept.append(sub)
        self._subscriptions[event_type] = kept

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Build an Event from keyword data and dispatch it.

        Returns:
            The dispatched Event
        """
        event = Event(type=event_type, data=data)
        self._dispatch(event)
        return event

    def publish_event(self, event: Event) -> None:
        """Dispatch an already-built Event."""
        self._dispatch(event)

    def has_subscribers(self, event_type: Enum) -> bool:
        return bool(self._subscriptions.get(event_type))

    def clear(self, event_type: Enum | None = None) -> None:
        """Drop the handlers of one event type, or of all of them."""
        if event_type is None:
            for subs in self._subscriptions.values():
                for sub in subs:
                    sub.active = False
            self._subscriptions.clear()
            return

        for sub in self._subscriptions.pop(event_type, []):
            sub.active = False

    def _dispatch(self, event: Event) -> None:
        # Handlers may (un)subscribe while we iterate
        snapshot = list(self._subscriptions.get(event.type, ()))

        for sub in snapshot:
            if not sub.active:
                continue

            handler = sub.resolve()
            if handler is None:
                self._remove(event.type, sub)
                continue
            if sub.one_shot:
                self._remove(event.type, sub)

            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in event handler for {event.type}")

            if event.consumed:
                break

    def _remove(self, event_type: Enum, sub: _Subscription) -> None:
        sub.active = False
        subs = self._subscriptions.get(event_type)
        if subs and sub in subs:
            subs.remove(sub)
