"""Tests for the inbound gateway webhook."""

from datetime import datetime, timezone


def test_webhook_end_to_end(client):
    response = client.post(
        "/webhook/x",
        json={"phone": "5511999999999", "text": "hello", "pushName": "Carlos"},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True}

    messages = client.get("/api/x/conversations/5511999999999/messages").json()["messages"]
    assert len(messages) == 1
    assert messages[0]["direction"] == "incoming"
    assert messages[0]["content"] == "hello"

    conversation = client.get("/api/x/conversations").json()["conversations"][0]
    assert conversation["displayName"] == "Carlos"
    assert conversation["unreadCount"] == 1


def test_get_is_a_liveness_handshake(client, store):
    response = client.get("/webhook/zapi")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert len(store) == 0


def test_other_methods_are_rejected(client):
    response = client.put("/webhook/zapi", json={})
    assert response.status_code == 405
    assert response.json()["success"] is False


def test_invalid_json_is_bad_payload_without_mutation(client, store, hub):
    response = client.post(
        "/webhook/zapi",
        content=b"{broken",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid payload"}
    assert len(store) == 0
    assert hub.sent == []


def test_non_object_json_is_bad_payload(client, store):
    response = client.post("/webhook/zapi", json=["not", "an", "object"])
    assert response.status_code == 400
    assert len(store) == 0


def test_missing_contact_is_still_accepted(client, store):
    response = client.post("/webhook/zapi", json={"text": "who am i"})
    assert response.status_code == 200
    conversation = client.get("/api/zapi/conversations").json()["conversations"][0]
    assert conversation["contactNumber"] == ""
    assert conversation["displayName"] == "unknown"
    assert conversation["lastMessagePreview"] == "who am i"


def test_webhook_broadcasts_conversation_and_message(client, hub):
    client.post("/webhook/zapi", json={"from": "123", "body": "ping", "messageId": "wamid.1"})
    assert len(hub.sent) == 1
    event, payload = hub.sent[0]
    assert event == "message"
    assert payload["message"]["id"] == "wamid.1"
    assert payload["conversation"]["contactNumber"] == "123"
    assert payload["conversation"]["messages"][0]["id"] == "wamid.1"


def test_display_name_upgrades_existing_conversation(client):
    client.post("/webhook/zapi", json={"phone": "55", "text": "a"})
    client.post("/webhook/zapi", json={"phone": "55", "text": "b", "senderName": "Joana"})
    conversation = client.get("/api/zapi/conversations").json()["conversations"][0]
    assert conversation["displayName"] == "Joana"


def test_image_webhook_and_timestamp(client):
    client.post(
        "/webhook/zapi",
        json={
            "phone": "55",
            "imageUrl": "http://cdn/i.jpg",
            "caption": "invoice",
            "timestamp": 1700000000000,
        },
    )
    message = client.get("/api/zapi/conversations/55/messages").json()["messages"][0]
    assert message["kind"] == "image"
    assert message["mediaUrl"] == "http://cdn/i.jpg"
    created = datetime.fromisoformat(message["createdAt"].replace("Z", "+00:00"))
    assert created == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    conversation = client.get("/api/zapi/conversations").json()["conversations"][0]
    assert conversation["lastMessagePreview"] == "Image: invoice"


def test_unnamed_contact_is_labelled_with_normalized_number(client):
    client.post("/webhook/zapi", json={"phone": "+55 11 9999", "text": "oi"})
    conversation = client.get("/api/zapi/conversations").json()["conversations"][0]
    assert conversation["contactNumber"] == "55119999"
    assert conversation["displayName"] == "55119999"


def test_non_finite_timestamp_is_accepted(client):
    before = datetime.now(timezone.utc)
    response = client.post("/webhook/zapi", json={"phone": "55", "text": "a", "timestamp": "inf"})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    message = client.get("/api/zapi/conversations/55/messages").json()["messages"][0]
    created = datetime.fromisoformat(message["createdAt"].replace("Z", "+00:00"))
    assert created >= before
