"""
Core Audio Manager.

Plays short UI cues (new message, unread notification, option click,
popup) through pygame.mixer.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import pygame

from chatengine.core.events import EventBus, AudioEvent

logger = logging.getLogger(__name__)


def _clamp(volume: float) -> float:
    return max(0.0, min(1.0, volume))


class SoundCue(Enum):
    """Named UI sounds. Values are the keys used in session config."""
    NOTIFICATION = "notification"
    MESSAGE = "message"
    OPTION = "option"
    POPUP = "popup"
    BUTTON = "button"


class AudioManager:
    """
    Central audio manager.

    Handles:
    - SFX caching and playback
    - Cue registry (SoundCue -> file path)
    - Volume categories (Master, SFX, UI)

    A manager whose mixer failed to initialize stays silent: every play
    call returns None.
    """

    def __init__(self, event_bus: EventBus | None = None):
        self.event_bus = event_bus

        # Configuration
        self._master_volume: float = 1.0
        self._category_volumes: dict[str, float] = {
            "sfx": 1.0,
            "ui": 1.0,
        }

        # Resources
        self._sound_cache: dict[str, pygame.mixer.Sound] = {}
        self._cues: dict[SoundCue, str] = {}

        self._initialized: bool = False

    def init(self, frequency: int = 44100, size: int = -16, channels: int = 2, buffer: int = 512) -> None:
        """Initialize the audio system."""
        if pygame.mixer.get_init():
            self._initialized = True
            return

        try:
            pygame.mixer.init(frequency=frequency, size=size, channels=channels, buffer=buffer)
            pygame.mixer.set_num_channels(16)
            self._initialized = True
            logger.info("Audio system initialized.")
        except pygame.error as e:
            logger.error(f"Failed to initialize audio system: {e}")

    def quit(self) -> None:
        """Shutdown audio system."""
        pygame.mixer.quit()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # --- Volume Control ---

    def set_master_volume(self, volume: float) -> None:
        self._master_volume = _clamp(volume)

    def set_category_volume(self, category: str, volume: float) -> None:
        """Set one category's volume. Unknown categories are ignored."""
        if category not in self._category_volumes:
            logger.debug(f"Unknown audio category: {category}")
            return
        self._category_volumes[category] = _clamp(volume)

    def get_settings(self) -> dict:
        """Volume settings in the shape apply_settings() accepts."""
        return {
            "master": self._master_volume,
            "categories": self._category_volumes.copy()
        }

    def apply_settings(self, settings: dict) -> None:
        self.set_master_volume(settings.get("master", 1.0))
        for cat, vol in settings.get("categories", {}).items():
            self.set_category_volume(cat, vol)

    # --- Cues ---

    def register_cue(self, cue: SoundCue, file_path: str | Path) -> None:
        """Bind a cue to a sound file."""
        self._cues[cue] = str(file_path)

    def has_cue(self, cue: SoundCue) -> bool:
        return cue in self._cues

    def play_cue(self, cue: SoundCue, volume: float = 1.0) -> pygame.mixer.Channel | None:
        """Play the sound bound to a cue, if any."""
        file_path = self._cues.get(cue)
        if file_path is None:
            return None
        return self.play_sfx(file_path, category="ui", volume=volume, cue=cue)

    # --- SFX ---

    def _get_sound(self, file_path: str) -> pygame.mixer.Sound | None:
        """Cached Sound for a file, loading it on first use."""
        if not self._initialized:
            return None

        if file_path not in self._sound_cache:
            try:
                if not Path(file_path).exists():
                    logger.warning(f"Audio file not found: {file_path}")
                    return None
                sound = pygame.mixer.Sound(file_path)
                self._sound_cache[file_path] = sound
            except pygame.error as e:
                logger.error(f"Failed to load sound {file_path}: {e}")
                return None

        return self._sound_cache[file_path]

    def play_sfx(
        self,
        file_path: str,
        category: str = "sfx",
        volume: float = 1.0,
        cue: SoundCue | None = None,
    ) -> pygame.mixer.Channel | None:
        """
        Play a sound effect.

        Args:
            file_path: Sound file path
            category: Sound category
            volume: Base volume multiplier
            cue: The cue this sound was played for, reported in SFX_PLAYED

        Returns:
            The channel used, or None if failed.
        """
        sound = self._get_sound(file_path)
        if not sound:
            return None

        final_vol = _clamp(
            self._master_volume * self._category_volumes.get(category, 1.0) * volume
        )

        channel = pygame.mixer.find_channel()
        if not channel:
            # All busy: take over the longest-playing channel
            channel = pygame.mixer.find_channel(True)

        if not channel:
            return None

        channel.set_volume(final_vol)
        channel.play(sound)

        if self.event_bus:
            self.event_bus.publish(AudioEvent.SFX_PLAYED, file=file_path, cue=cue)

        return channel
