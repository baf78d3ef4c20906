"""
Chat session - creates and wires every service for one play session.

The session owns one instance of each service (event bus, scheduler,
audio, countdown, router, sequencer) and passes them to each other by
reference. Nothing is looked up globally.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from chatengine.audio.manager import AudioManager, SoundCue
from chatengine.core.events import Event, EventBus, ChatEvent
from chatengine.core.tasks import TaskScheduler
from chatengine.resources.config import ConfigError, SessionConfig
from chatstory.chat.presenter import ChatPresenter
from chatstory.chat.router import ConversationRouter
from chatstory.dialog.script import ScriptStore
from chatstory.dialog.sequencer import DialogSequencer
from chatstory.progression.countdown import CountdownTimer

logger = logging.getLogger(__name__)


class ChatSession:
    """
    One play session.

    Usage:
        session = ChatSession.from_files("data/session.json", presenter)
        session.setup()
        while not session.finished:
            session.update(dt)
    """

    def __init__(
        self,
        store: ScriptStore,
        config: Optional[SessionConfig] = None,
        presenter: Optional[ChatPresenter] = None,
    ):
        self.config = config or SessionConfig()
        self.store = store

        # Core services
        self.event_bus = EventBus()
        self.scheduler = TaskScheduler()
        self.audio = AudioManager(self.event_bus)
        self.timer = CountdownTimer(self.event_bus, self.config.total_time)
        self.router = ConversationRouter(
            self.event_bus,
            presenter,
            self.audio,
            message_volume=self.config.message_volume,
        )
        self.sequencer = DialogSequencer(
            store,
            self.router,
            self.event_bus,
            self.scheduler,
            self.timer,
            default_line_delay=self.config.default_line_delay,
            self_line_delay=self.config.self_line_delay,
            option_delay=self.config.option_delay,
            safe_threshold=self.config.safe_threshold,
            lookahead_limit=self.config.lookahead_limit,
        )

        self.result: Optional[ChatEvent] = None

        self.event_bus.subscribe(ChatEvent.GAME_WIN, self._on_result)
        self.event_bus.subscribe(ChatEvent.GAME_FAIL, self._on_result)
        self.event_bus.subscribe(ChatEvent.CONSEQUENCE_POPUP, self._on_consequence)

    @classmethod
    def from_files(
        cls,
        config_path: str | Path,
        presenter: Optional[ChatPresenter] = None,
    ) -> ChatSession:
        """
        Build a session from a config file and the script it names.

        Raises:
            ConfigError: If the config is invalid or names no script
            LoadError: If the script cannot be loaded
        """
        config = SessionConfig.from_file(config_path)
        if config.script_path is None:
            raise ConfigError(f"Config {config_path} has no script_path")
        store = ScriptStore.load(config.script_path)
        return cls(store, config, presenter)

    @property
    def finished(self) -> bool:
        return self.result is not None

    def setup(self) -> None:
        """Register contacts, size the countdown and open the first conversation."""
        self._setup_audio()

        for contact in self.config.contacts:
            self.router.add_contact(contact.name, contact.entry_node)

        hint = self.store.total_time_hint()
        if hint > 0:
            logger.info(f"Using total time from script: {hint}s")
            self.timer.set_total_time(hint)
        self.timer.start()

        contacts = self.router.contacts
        if contacts:
            self.router.switch_active(contacts[0])

        if self.config.start_node > 0:
            self.trigger(self.config.start_node)

    def _setup_audio(self) -> None:
        if not self.config.sounds:
            return

        self.audio.init()
        for name, path in self.config.sounds.items():
            try:
                cue = SoundCue(name)
            except ValueError:
                logger.warning(f"Unknown sound cue in config: {name!r}")
                continue
            self.audio.register_cue(cue, path)

    def update(self, dt: float) -> None:
        """Advance the session by dt seconds."""
        self.scheduler.update(dt)
        self.timer.update(dt)

    def trigger(self, node_id: int) -> None:
        """Request a dialogue, as a scene script or story beat would."""
        self.event_bus.publish(ChatEvent.DIALOG_START, node_id=node_id)

    def switch_to(self, contact_name: str) -> bool:
        return self.router.switch_active(contact_name)

    def choose(self, index: int) -> bool:
        return self.router.select_option(index)

    def shutdown(self) -> None:
        """Stop everything the session started."""
        self.sequencer.cancel()
        self.scheduler.cancel_all()
        self.timer.stop()
        if self.audio.initialized:
            self.audio.quit()

    def _on_result(self, event: Event) -> None:
        if self.result is not None:
            logger.debug(f"Ignoring {event.type.name}, result already {self.result.name}")
            return
        self.result = event.type
        self.timer.stop()
        logger.info(f"Session result: {event.type.name}")

    def _on_consequence(self, event: Event) -> None:
        self.audio.play_cue(SoundCue.POPUP)
