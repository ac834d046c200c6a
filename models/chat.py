"""Unified chat events delivered by live backend streams.

Every variant carries the conversation it belongs to (for routing) and a
``dedupe_key`` so a consumer can drop a backend's redelivery of the same
event. Keys are prefixed with the platform tag because message ids from
different backends share no namespace.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .status import Platform


class ConversationUpdateKind(str, Enum):
    BEGAN = 'began'
    ACCEPTED = 'accepted'
    LEFT = 'left'
    MUTED = 'muted'
    UNMUTED = 'unmuted'


@dataclass(frozen=True)
class NewMessage:
    id: str
    conversation_id: str
    sender_id: str
    sender_display_name: str
    text: str
    sent_at: datetime
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:msg-{self.id}"


@dataclass(frozen=True)
class DeletedMessage:
    message_id: str
    conversation_id: str
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:del-{self.message_id}"


@dataclass(frozen=True)
class ConversationUpdate:
    conversation_id: str
    kind: ConversationUpdateKind
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        # Began and left are distinct events for the same conversation
        return f"{self.platform.value}:conv-{self.conversation_id}-{self.kind.value}"


@dataclass(frozen=True)
class ReadReceipt:
    conversation_id: str
    account_id: str
    platform: Platform
    read_at: Optional[datetime] = None

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:read-{self.conversation_id}-{self.account_id}"


@dataclass(frozen=True)
class ReactionAdded:
    message_id: str
    conversation_id: str
    value: str
    sender_id: str
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:react-add-{self.message_id}-{self.sender_id}-{self.value}"


@dataclass(frozen=True)
class ReactionRemoved:
    message_id: str
    conversation_id: str
    value: str
    sender_id: str
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:react-rm-{self.message_id}-{self.sender_id}-{self.value}"


@dataclass(frozen=True)
class TypingIndicator:
    conversation_id: str
    sender_id: str
    platform: Platform

    @property
    def dedupe_key(self) -> str:
        return f"{self.platform.value}:typing-{self.conversation_id}-{self.sender_id}"


UnifiedChatEvent = Union[
    NewMessage, DeletedMessage, ConversationUpdate, ReadReceipt,
    ReactionAdded, ReactionRemoved, TypingIndicator,
]


def route(event: UnifiedChatEvent) -> str:
    """Conversation the event belongs to."""
    return event.conversation_id


def dedupe_key(event: UnifiedChatEvent) -> str:
    return event.dedupe_key
