"""Turn heterogeneous gateway webhook payloads into canonical messages.

Gateways disagree on field names, so every extracted field is described by an
ordered list of rules. A rule is a pure function ``payload -> value | None``;
the first rule returning something wins.
"""

import json
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from zaprelay.models.conversation import MESSAGE_KINDS, Message

Rule = Callable[[dict[str, Any]], Any]

UNKNOWN_CONTACT = "unknown"


def field(*path: str) -> Rule:
    """Rule reading a (possibly nested) key; empty values count as absent."""

    def rule(payload: dict[str, Any]) -> Any:
        value: Any = payload
        for key in path:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        if value is None or value == "" or value is False:
            return None
        return value

    return rule


def first_match(payload: dict[str, Any], rules: list[Rule]) -> Any:
    for rule in rules:
        value = rule(payload)
        if value is not None:
            return value
    return None


def _zapi_text(payload: dict[str, Any]) -> Any:
    # Z-API nests received text as {"text": {"message": "..."}}
    text = payload.get("text")
    if isinstance(text, dict) and text.get("message"):
        return text["message"]
    return field("text")(payload)


CONTACT_RULES: list[Rule] = [
    field("phone"),
    field("from"),
    field("remoteJid"),
    field("number"),
    field("chatId"),
    field("contact"),
]

TIMESTAMP_RULES: list[Rule] = [field("timestamp"), field("momment")]

CONTENT_RULES: list[Rule] = [
    field("message", "text"),
    field("message", "body"),
    field("body"),
    _zapi_text,
    field("caption"),
]

CAPTION_RULES: list[Rule] = [field("caption"), field("message", "caption")]

MEDIA_URL_RULES: list[Rule] = [field("imageUrl"), field("fileUrl"), field("mediaUrl")]

DISPLAY_NAME_RULES: list[Rule] = [field("senderName"), field("contactName"), field("pushName")]

MESSAGE_ID_RULES: list[Rule] = [field("messageId"), field("id")]


def extract_contact(payload: dict[str, Any]) -> str:
    value = first_match(payload, CONTACT_RULES)
    return str(value) if value is not None else UNKNOWN_CONTACT


def parse_timestamp(raw: Any, now: datetime | None = None) -> datetime:
    """Interpret an epoch as seconds when it has 10 digits, else milliseconds.

    This is a heuristic: a gateway emitting another resolution will be
    misread. Missing or non-numeric values fall back to ``now``.
    """
    fallback = now or datetime.now(timezone.utc)
    if raw is None or isinstance(raw, bool):
        return fallback
    try:
        epoch = float(raw)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(epoch):
        return fallback
    digits = str(abs(int(epoch)))
    seconds = epoch if len(digits) == 10 else epoch / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return fallback


def infer_kind(payload: dict[str, Any]) -> str:
    declared = payload.get("type")
    if isinstance(declared, str) and declared in MESSAGE_KINDS:
        return declared
    if field("imageUrl")(payload) is not None:
        return "image"
    if field("fileUrl")(payload) is not None:
        return "file"
    return "text"


def extract_content(payload: dict[str, Any]) -> str:
    value = first_match(payload, CONTENT_RULES)
    if value is None:
        return ""
    if not isinstance(value, str):
        return json.dumps(value)
    return value


def extract_display_name(payload: dict[str, Any]) -> str | None:
    value = first_match(payload, DISPLAY_NAME_RULES)
    return str(value) if value is not None else None


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def normalize_incoming(payload: dict[str, Any], now: datetime | None = None) -> Message:
    """Build the canonical incoming message for a webhook payload."""
    message_id = first_match(payload, MESSAGE_ID_RULES)
    return Message(
        id=str(message_id) if message_id is not None else str(uuid.uuid4()),
        direction="incoming",
        kind=infer_kind(payload),
        content=extract_content(payload),
        created_at=parse_timestamp(first_match(payload, TIMESTAMP_RULES), now),
        agent_name=extract_display_name(payload),
        media_url=_optional_str(first_match(payload, MEDIA_URL_RULES)),
        caption=_optional_str(first_match(payload, CAPTION_RULES)),
        file_name=_optional_str(field("fileName")(payload)),
        metadata={"webhook": payload},
    )
