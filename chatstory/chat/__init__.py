"""
Chat module - contacts, histories and the conversation router.
"""

from chatstory.chat.models import Contact, Message, MessageKind
from chatstory.chat.presenter import ChatPresenter, TranscriptPresenter
from chatstory.chat.router import ConversationRouter

__all__ = [
    "Contact",
    "Message",
    "MessageKind",
    "ChatPresenter",
    "TranscriptPresenter",
    "ConversationRouter",
]
