"""
Conversation router - owns every contact's history and the foreground view.

Handles:
- Which conversation is in view, and unread flags for the others
- Appending messages and forwarding the visible ones to the presenter
- Queuing dialogues for background contacts until they are opened
- The option gate: at most one set of choices, answered at most once
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from chatengine.audio.manager import SoundCue
from chatengine.core.events import EventBus, ChatEvent
from chatstory.chat.models import Contact, Message
from chatstory.chat.presenter import ChatPresenter

if TYPE_CHECKING:
    from chatengine.audio.manager import AudioManager

logger = logging.getLogger(__name__)

OptionCallback = Callable[[int], None]


class ConversationRouter:
    """
    Routes dialogue output to per-contact conversations.

    Usage:
        router = ConversationRouter(event_bus, presenter)
        router.add_contact("Mira")
        router.switch_active("Mira")
        router.post_message("hey", is_self=False, contact=router.get_contact("Mira"))
    """

    def __init__(
        self,
        events: EventBus,
        presenter: Optional[ChatPresenter] = None,
        audio: Optional[AudioManager] = None,
        message_volume: float = 0.5,
    ):
        self.events = events
        self.presenter = presenter or ChatPresenter()
        self.audio = audio
        self.message_volume = message_volume

        self._contacts: dict[str, Contact] = {}
        self._active: Optional[Contact] = None

        # Option gate
        self._options_locked = False
        self._on_chosen: Optional[OptionCallback] = None
        self._option_captions: list[str] = []
        self._option_contact: Optional[Contact] = None

    # Contacts

    def add_contact(self, contact: Contact | str, entry_node: int = 0) -> Contact:
        """
        Register a contact.

        A contact added with an entry dialogue starts out unread.
        """
        if isinstance(contact, str):
            contact = Contact(name=contact)
        if contact.name in self._contacts:
            raise ValueError(f"Duplicate contact: {contact.name}")

        if entry_node > 0:
            contact.pending_entry_node_id = entry_node
        if contact.has_pending_entry:
            contact.unread = True

        self._contacts[contact.name] = contact
        return contact

    def get_contact(self, name: str) -> Optional[Contact]:
        """Look up a contact by name."""
        if not name:
            return None
        contact = self._contacts.get(name)
        if contact is None:
            logger.debug(f"Unresolved contact: {name!r}")
        return contact

    @property
    def contacts(self) -> list[Contact]:
        return list(self._contacts.values())

    @property
    def active_contact(self) -> Optional[Contact]:
        return self._active

    def is_active(self, contact: Optional[Contact]) -> bool:
        return contact is not None and contact is self._active

    # View

    def switch_active(self, contact: Contact | str) -> bool:
        """
        Bring a conversation to the foreground.

        Ignored while choices are pending, except to open the background
        conversation the choices belong to. Opening a contact with a
        queued dialogue starts that dialogue.

        Returns:
            True if the view changed
        """
        if isinstance(contact, str):
            target = self.get_contact(contact)
            if target is None:
                logger.warning(f"Cannot switch to unknown contact {contact!r}")
                return False
            contact = target

        if self._options_locked:
            bound = self._option_contact
            if bound is None or contact is not bound or bound is self._active:
                logger.debug("Cannot switch contact while waiting for option selection.")
                return False

        self._active = contact
        contact.unread = False

        self.presenter.render(contact, list(contact.message_history))
        if self._options_locked and self._option_contact is contact:
            self.presenter.render_options(list(self._option_captions))

        if contact.has_pending_entry and self._options_locked:
            # Queued dialog waits until the pending choice is answered
            logger.debug(f"Keeping dialog {contact.pending_entry_node_id} queued for {contact.name}")
        elif contact.has_pending_entry:
            node_id = contact.pending_entry_node_id
            contact.pending_entry_node_id = 0
            logger.info(f"Starting queued dialog {node_id} for {contact.name}")
            self.events.publish(ChatEvent.DIALOG_START, node_id=node_id)

        return True

    # Messages

    def post_message(
        self,
        text: str,
        is_self: bool,
        contact: Optional[Contact] = None,
    ) -> Optional[Message]:
        """
        Append a message to a contact's history.

        Args:
            text: Message text; empty text is ignored
            is_self: True if the player wrote it
            contact: Target conversation (default: the one in view)

        Returns:
            The appended message, or None if nothing was posted
        """
        if contact is None:
            contact = self._active
        if not text or contact is None:
            return None

        message = Message(
            sender_name="" if is_self else contact.name,
            content=text,
            is_self=is_self,
        )
        contact.message_history.append(message)

        if contact is self._active:
            self.presenter.show_message(contact, message)
            if not is_self:
                self._play(SoundCue.MESSAGE, self.message_volume)
        elif not is_self:
            contact.unread = True
            self._notify(contact)

        return message

    def insert_separator(self, contact: Contact) -> Message:
        """
        Append a resumption marker.

        The caller checks that the history does not already end in one.
        """
        message = Message.separator()
        contact.message_history.append(message)
        if contact is self._active:
            self.presenter.show_message(contact, message)
        return message

    # Dialogue hand-off

    def queue_dialog(self, contact_name: str, node_id: int) -> bool:
        """Attach a dialogue to a contact, to start when it is next opened."""
        contact = self.get_contact(contact_name)
        if contact is None:
            logger.warning(f"Cannot queue dialog {node_id}: unknown contact {contact_name!r}")
            return False

        contact.pending_entry_node_id = node_id
        contact.unread = True
        self._notify(contact)
        logger.info(f"Queued dialog {node_id} for {contact.name}")
        return True

    def trigger_dialog(self, contact_name: str, node_id: int) -> bool:
        """
        Start a dialogue for a contact now if it is in view, else queue it.
        """
        contact = self.get_contact(contact_name)
        if contact is None:
            logger.warning(f"Cannot trigger dialog {node_id}: unknown contact {contact_name!r}")
            return False

        if contact is self._active:
            self.events.publish(ChatEvent.DIALOG_START, node_id=node_id)
            return True
        return self.queue_dialog(contact_name, node_id)

    # Option gate

    @property
    def options_locked(self) -> bool:
        return self._options_locked

    @property
    def option_captions(self) -> list[str]:
        return list(self._option_captions)

    def present_options(
        self,
        captions: list[str],
        on_chosen: OptionCallback,
        bound_contact: Optional[Contact] = None,
    ) -> None:
        """
        Lock the gate and show choices.

        on_chosen(index) fires at most once, after the gate unlocks.
        Choices bound to a background contact are shown when that
        contact is opened.
        """
        self._options_locked = True
        self._on_chosen = on_chosen
        self._option_captions = list(captions)
        self._option_contact = bound_contact

        if bound_contact is None or bound_contact is self._active:
            self.presenter.render_options(list(captions))
        else:
            bound_contact.unread = True
            self._notify(bound_contact)

    def select_option(self, index: int) -> bool:
        """
        Answer the pending choices.

        Returns:
            True if a callback fired
        """
        if not self._options_locked or self._on_chosen is None:
            return False
        if not 0 <= index < len(self._option_captions):
            logger.warning(f"Option index {index} out of range ({len(self._option_captions)} options)")
            return False

        callback = self._on_chosen
        self._reset_gate()
        self.presenter.clear_options()
        self._play_option_sound()

        callback(index)
        return True

    def clear_all_pending_options(self) -> None:
        """Force-unlock the gate and drop any pending callback."""
        had_options = self._options_locked
        self._reset_gate()
        if had_options:
            self.presenter.clear_options()

    def _reset_gate(self) -> None:
        self._options_locked = False
        self._on_chosen = None
        self._option_captions = []
        self._option_contact = None

    # Notifications

    def _notify(self, contact: Contact) -> None:
        self.presenter.notify(contact)
        self._play(SoundCue.NOTIFICATION)

    def _play_option_sound(self) -> None:
        # Falls back to the button click when no option sound is registered
        if self.audio is None:
            return
        cue = SoundCue.OPTION if self.audio.has_cue(SoundCue.OPTION) else SoundCue.BUTTON
        self._play(cue)

    def _play(self, cue: SoundCue, volume: float = 1.0) -> None:
        if self.audio is not None:
            self.audio.play_cue(cue, volume)
