"""Progression - the session countdown and its safe phase."""

from chatstory.progression.countdown import CountdownTimer

__all__ = ["CountdownTimer"]
