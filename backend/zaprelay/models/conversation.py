"""Canonical message and conversation models shared by webhooks and send commands."""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Direction = Literal["incoming", "outgoing"]
MessageKind = Literal["text", "image", "file", "buttons", "list"]

MESSAGE_KINDS: tuple[str, ...] = ("text", "image", "file", "buttons", "list")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


class Message(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=_new_id)
    direction: Direction
    kind: MessageKind = "text"
    content: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    media_url: Optional[str] = None
    caption: Optional[str] = None
    file_name: Optional[str] = None
    buttons: Optional[list[str]] = None
    list_items: Optional[list[dict[str, Any]]] = None
    metadata: Optional[dict[str, Any]] = None


class ConversationSummary(_CamelModel):
    id: str
    contact_number: str
    display_name: Optional[str] = None
    last_message_preview: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    last_agent_name: Optional[str] = None


class Conversation(ConversationSummary):
    id: str = Field(default_factory=_new_id)
    messages: list[Message] = Field(default_factory=list)

    def summary(self) -> ConversationSummary:
        return ConversationSummary.model_validate(self.model_dump(exclude={"messages"}))
