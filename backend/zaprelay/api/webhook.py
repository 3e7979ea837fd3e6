"""Inbound delivery callbacks from the WhatsApp gateway."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from zaprelay.core.errors import BadPayload
from zaprelay.services.events import EventHub, EventType, get_event_hub
from zaprelay.services.normalize import (
    UNKNOWN_CONTACT,
    extract_contact,
    extract_display_name,
    normalize_incoming,
)
from zaprelay.services.store import ConversationStore, get_store

router = APIRouter()
logger = logging.getLogger(__name__)


@router.api_route("/{gateway}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def receive_webhook(
    gateway: str,
    request: Request,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
):
    if request.method == "GET":
        # Verification handshake from the gateway
        return {"success": True}
    if request.method != "POST":
        return JSONResponse(status_code=405, content={"success": False, "message": "Method not allowed"})

    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Invalid {gateway} webhook body: {e}")
        raise BadPayload()
    if not isinstance(payload, dict):
        logger.error(f"Invalid {gateway} webhook body: expected an object, got {type(payload).__name__}")
        raise BadPayload()

    contact = extract_contact(payload)
    display_name = extract_display_name(payload)
    message = normalize_incoming(payload)

    # Name first, so a conversation created by the append already carries it
    if display_name:
        store.upsert_display_name(contact, display_name)
    # Unnamed conversations show their normalized number, except the contact-less one
    if not display_name and contact == UNKNOWN_CONTACT:
        display_name = UNKNOWN_CONTACT
    conversation = store.append_message(contact, message, display_name=display_name)

    logger.info(f"Received {message.kind} message from {conversation.contact_number} via {gateway}")
    hub.broadcast(EventType.MESSAGE.value, {"conversation": conversation.to_json(), "message": message.to_json()})

    return {"success": True}
