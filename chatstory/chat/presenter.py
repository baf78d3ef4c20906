"""
Presentation surface for the chat view.

The router pushes everything the player can see through a ChatPresenter.
All methods are fire-and-forget; the base class ignores everything, so a
headless session (tests, tools) can run without a UI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatstory.chat.models import Contact, Message


class ChatPresenter:
    """Base presenter. Override the hooks a UI needs."""

    def render(self, contact: Contact, history: list[Message]) -> None:
        """Replace the visible conversation with a contact's full history."""

    def show_message(self, contact: Contact, message: Message) -> None:
        """Append one message to the visible conversation."""

    def render_options(self, captions: list[str]) -> None:
        """Show option buttons; index i of captions maps to selection i."""

    def clear_options(self) -> None:
        """Remove any option buttons."""

    def notify(self, contact: Contact) -> None:
        """Flag a background contact as having unread activity."""


class TranscriptPresenter(ChatPresenter):
    """
    Presenter that writes the visible conversation as plain text lines.

    Used by the console demo and handy when debugging scripts.
    """

    def __init__(self, write=print):
        self._write = write

    def render(self, contact: Contact, history: list[Message]) -> None:
        self._write(f"=== {contact.name} ===")
        for message in history:
            self._write(self.format_message(contact, message))

    def show_message(self, contact: Contact, message: Message) -> None:
        self._write(self.format_message(contact, message))

    def render_options(self, captions: list[str]) -> None:
        for i, caption in enumerate(captions):
            self._write(f"  [{i}] {caption}")

    def notify(self, contact: Contact) -> None:
        self._write(f"  (new message from {contact.name})")

    @staticmethod
    def format_message(contact: Contact, message: Message) -> str:
        if message.is_separator:
            return "  ----------"
        if message.is_self:
            return f"{'':>12}  {message.content}  <me>"
        return f"<{message.sender_name or contact.name}>  {message.content}"
