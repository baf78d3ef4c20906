"""Audio cues for the chat UI."""

from chatengine.audio.manager import AudioManager, SoundCue

__all__ = ["AudioManager", "SoundCue"]
