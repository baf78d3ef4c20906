"""
Chat models - contacts and their message histories.

Data-only containers using Pydantic, like the engine components:
the ConversationRouter is the only thing that mutates them.
"""

from __future__ import annotations

import time
from enum import Enum, auto
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageKind(Enum):
    """Kind of history entry."""
    NORMAL = auto()
    SEPARATOR = auto()


class ChatModel(BaseModel):
    """Base for chat data models."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid',
    )


class Message(ChatModel):
    """
    A single entry in a contact's history.

    Attributes:
        kind: NORMAL for a line of text, SEPARATOR for a resumption marker
        sender_name: Who wrote it (empty for the player and for separators)
        content: Text (empty for separators)
        is_self: True if the player wrote it
        timestamp: Wall-clock time the entry was created
    """
    kind: MessageKind = MessageKind.NORMAL
    sender_name: str = ""
    content: str = ""
    is_self: bool = False
    timestamp: float = Field(default_factory=time.time)

    @classmethod
    def separator(cls) -> Message:
        return cls(kind=MessageKind.SEPARATOR)

    @property
    def is_separator(self) -> bool:
        return self.kind is MessageKind.SEPARATOR


class Contact(ChatModel):
    """
    A conversation partner.

    Attributes:
        name: Unique display name, also the key used by script rows
        pending_entry_node_id: Dialogue queued until this contact is viewed (0 = none)
        unread: Whether the contact has activity the player has not seen
        message_history: Append-only list of messages
    """
    name: str
    pending_entry_node_id: int = 0
    unread: bool = False
    message_history: list[Message] = Field(default_factory=list)

    @property
    def last_message(self) -> Optional[Message]:
        if not self.message_history:
            return None
        return self.message_history[-1]

    @property
    def ends_with_separator(self) -> bool:
        last = self.last_message
        return last is not None and last.is_separator

    @property
    def has_pending_entry(self) -> bool:
        return self.pending_entry_node_id > 0
