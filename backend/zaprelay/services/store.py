"""Conversation store keyed by normalized contact number.

The relay keeps history only in process memory. Controllers talk to the
``ConversationStore`` interface, so a durable backend can replace
``InMemoryConversationStore`` without touching them.

Every mutation runs to completion without awaiting, which keeps read-modify-write
on a conversation atomic under the single event loop.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime

from zaprelay.models.conversation import Conversation, ConversationSummary, Message

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_number(value: object) -> str:
    """Strip everything but digits: ``"+55 (11) 9123-4567"`` -> ``"551191234567"``."""
    if value is None or value == "":
        return ""
    return _NON_DIGITS.sub("", str(value))


def preview_for(message: Message) -> str:
    if message.kind == "image":
        return f"Image: {message.caption}" if message.caption else "Image sent"
    if message.kind == "file":
        return f"File: {message.file_name}" if message.file_name else "File sent"
    if message.kind == "buttons":
        return message.content or "Message with buttons"
    if message.kind == "list":
        return message.content or "Message with list"
    return message.content or "Message"


class ConversationStore(ABC):
    @abstractmethod
    def append_message(
        self, contact_number: str, message: Message, display_name: str | None = None
    ) -> Conversation:
        """Append a message, creating the conversation on first reference."""
        ...

    @abstractmethod
    def list_conversations(self) -> list[ConversationSummary]:
        """Summaries, most recent activity first."""
        ...

    @abstractmethod
    def list_messages(self, contact_number: str) -> list[Message]:
        ...

    @abstractmethod
    def mark_read(self, contact_number: str) -> Conversation | None:
        ...

    @abstractmethod
    def upsert_display_name(self, contact_number: str, name: str) -> Conversation:
        ...

    @abstractmethod
    def get(self, contact_number: str) -> Conversation | None:
        ...


class InMemoryConversationStore(ConversationStore):
    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def _ensure(self, contact_number: str, display_name: str | None = None) -> Conversation:
        key = normalize_number(contact_number)
        conversation = self._conversations.get(key)
        if conversation is None:
            conversation = Conversation(contact_number=key, display_name=display_name or key)
            self._conversations[key] = conversation
            logger.debug(f"Created conversation {conversation.id} for {key}")
        return conversation

    def append_message(
        self, contact_number: str, message: Message, display_name: str | None = None
    ) -> Conversation:
        conversation = self._ensure(contact_number, display_name)
        conversation.messages.append(message)
        conversation.last_message_preview = preview_for(message)
        conversation.last_message_at = message.created_at
        if message.direction == "incoming":
            conversation.unread_count += 1
        elif message.agent_name:
            conversation.last_agent_name = message.agent_name
        return conversation

    def list_conversations(self) -> list[ConversationSummary]:
        active = [c for c in self._conversations.values() if c.last_message_at is not None]
        idle = [c for c in self._conversations.values() if c.last_message_at is None]
        active.sort(key=_last_activity, reverse=True)
        return [c.summary() for c in active + idle]

    def list_messages(self, contact_number: str) -> list[Message]:
        conversation = self.get(contact_number)
        return list(conversation.messages) if conversation else []

    def mark_read(self, contact_number: str) -> Conversation | None:
        conversation = self.get(contact_number)
        if conversation is not None:
            conversation.unread_count = 0
        return conversation

    def upsert_display_name(self, contact_number: str, name: str) -> Conversation:
        conversation = self._ensure(contact_number, name)
        conversation.display_name = name
        return conversation

    def get(self, contact_number: str) -> Conversation | None:
        return self._conversations.get(normalize_number(contact_number))


def _last_activity(conversation: Conversation) -> datetime:
    return conversation.last_message_at  # type: ignore[return-value]


conversation_store = InMemoryConversationStore()


def get_store() -> ConversationStore:
    return conversation_store
