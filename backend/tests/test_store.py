"""Tests for the in-memory conversation store."""

from datetime import datetime, timedelta, timezone

from zaprelay.models.conversation import Message
from zaprelay.services.store import InMemoryConversationStore, normalize_number, preview_for

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _incoming(content="hi", at=T0, **kw):
    return Message(direction="incoming", content=content, created_at=at, **kw)


def _outgoing(content="hello", at=T0, **kw):
    return Message(direction="outgoing", content=content, created_at=at, **kw)


def test_normalize_number_strips_non_digits():
    assert normalize_number("+55 (11) 91234-5678") == "5511912345678"
    assert normalize_number(5511912345678) == "5511912345678"
    assert normalize_number(None) == ""
    assert normalize_number("") == ""


def test_punctuation_variants_share_one_conversation():
    store = InMemoryConversationStore()
    a = store.append_message("+55 11 91234-5678", _incoming())
    b = store.append_message("5511912345678", _outgoing())
    assert a.id == b.id
    assert len(store) == 1
    assert len(store.list_messages("55-11-91234-5678")) == 2


def test_new_conversation_uses_display_name_or_number():
    store = InMemoryConversationStore()
    named = store.append_message("111", _incoming(), display_name="Maria")
    unnamed = store.append_message("222", _incoming())
    assert named.display_name == "Maria"
    assert unnamed.display_name == "222"


def test_unread_counts_only_incoming_until_marked_read():
    store = InMemoryConversationStore()
    for _ in range(3):
        store.append_message("123", _incoming())
    for _ in range(2):
        store.append_message("123", _outgoing())
    assert store.get("123").unread_count == 3

    conversation = store.mark_read("123")
    assert conversation.unread_count == 0

    store.append_message("123", _incoming())
    assert store.get("123").unread_count == 1


def test_mark_read_unknown_conversation_returns_none():
    store = InMemoryConversationStore()
    assert store.mark_read("999") is None


def test_list_messages_unknown_conversation_is_empty():
    store = InMemoryConversationStore()
    assert store.list_messages("999") == []


def test_last_agent_name_tracks_outgoing_only():
    store = InMemoryConversationStore()
    store.append_message("123", _outgoing(agent_name="Ana"))
    store.append_message("123", _incoming(agent_name="Carlos"))
    store.append_message("123", _outgoing())
    assert store.get("123").last_agent_name == "Ana"


def test_preview_derivation():
    assert preview_for(_incoming(kind="image", caption="invoice")) == "Image: invoice"
    assert preview_for(_incoming(kind="image")) == "Image sent"
    assert preview_for(_incoming(kind="file", file_name="a.pdf")) == "File: a.pdf"
    assert preview_for(_incoming(kind="file")) == "File sent"
    assert preview_for(_incoming(kind="buttons", content="Pick one")) == "Pick one"
    assert preview_for(_incoming(kind="list", content="")) == "Message with list"
    assert preview_for(_incoming(content="")) == "Message"
    assert preview_for(_incoming(content="oi")) == "oi"


def test_append_updates_preview_and_last_message_at():
    store = InMemoryConversationStore()
    later = T0 + timedelta(minutes=5)
    store.append_message("123", _incoming("first"))
    conversation = store.append_message("123", _incoming(kind="image", caption="invoice", at=later))
    assert conversation.last_message_preview == "Image: invoice"
    assert conversation.last_message_at == later


def test_list_conversations_sorted_by_recent_activity():
    store = InMemoryConversationStore()
    store.append_message("1", _incoming(at=T0))
    store.append_message("2", _incoming(at=T0 + timedelta(hours=2)))
    store.append_message("3", _incoming(at=T0 + timedelta(hours=1)))
    store.upsert_display_name("4", "No messages yet")

    numbers = [c.contact_number for c in store.list_conversations()]
    assert numbers == ["2", "3", "1", "4"]


def test_list_conversations_omits_messages():
    store = InMemoryConversationStore()
    store.append_message("1", _incoming())
    summary = store.list_conversations()[0].to_json()
    assert "messages" not in summary
    assert summary["contactNumber"] == "1"
    assert summary["unreadCount"] == 1


def test_upsert_display_name_creates_then_overwrites():
    store = InMemoryConversationStore()
    created = store.upsert_display_name("+1 555", "Old")
    assert created.contact_number == "1555"
    assert created.messages == []

    updated = store.upsert_display_name("1555", "New")
    assert updated.id == created.id
    assert updated.display_name == "New"
