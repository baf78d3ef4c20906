"""
Countdown timer - the session's time budget.

Choices and lines can cost time. When the budget runs out the game is
lost, unless the story has already reached its safe phase.
"""

from __future__ import annotations

import logging
from typing import Optional

from chatengine.core.events import EventBus, ChatEvent

logger = logging.getLogger(__name__)


class CountdownTimer:
    """
    Session countdown with a one-way safe phase.

    Usage:
        timer = CountdownTimer(event_bus, total_time=600)
        timer.start()
        timer.update(dt)        # every frame
        timer.reduce_time(30)   # a choice cost 30 seconds
    """

    def __init__(self, events: Optional[EventBus] = None, total_time: float = 600.0):
        self.events = events
        self._total_time = total_time
        self._remaining = total_time
        self._running = False
        self._expired = False
        self._safe_phase = False

    @property
    def total_time(self) -> float:
        return self._total_time

    @property
    def remaining(self) -> float:
        return self._remaining

    @property
    def progress(self) -> float:
        """Fraction of the budget left (1.0 = full)."""
        if self._total_time <= 0:
            return 0.0
        return self._remaining / self._total_time

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def safe_phase(self) -> bool:
        return self._safe_phase

    def enter_safe_phase(self) -> bool:
        """
        Mark the safe checkpoint as reached.

        Returns:
            True the first time, False if already safe
        """
        if self._safe_phase:
            return False
        self._safe_phase = True
        logger.info("Safe phase reached")
        return True

    def set_total_time(self, total_time: float) -> None:
        """Change the budget and refill the remaining time."""
        self._total_time = total_time
        self._remaining = total_time
        self._expired = False

    def start(self) -> None:
        if not self._expired:
            self._running = True

    def stop(self) -> None:
        self._running = False

    def update(self, dt: float) -> None:
        """Count down by dt seconds."""
        if not self._running:
            return
        self._consume(dt)

    def reduce_time(self, amount: float) -> None:
        """Deduct time, e.g. the cost of a choice. Ignored while stopped."""
        if not self._running or amount <= 0:
            return
        self._consume(amount)
        logger.debug(f"Reduced {amount}s, remaining: {self._remaining:.1f}s")

    def _consume(self, amount: float) -> None:
        self._remaining = max(0.0, self._remaining - amount)
        if self._remaining <= 0:
            self._on_expired()

    def _on_expired(self) -> None:
        self._running = False
        self._expired = True
        logger.info("Time's up!")

        if self._safe_phase:
            logger.info("In safe phase, not failing")
            return

        if self.events:
            self.events.publish(ChatEvent.GAME_FAIL)
