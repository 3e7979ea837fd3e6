"""Operator-facing WhatsApp API: conversations, send commands and session control."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from zaprelay.core.config import settings
from zaprelay.core.errors import NotFound, UpstreamError
from zaprelay.core.logbuffer import get_log_buffer
from zaprelay.models.conversation import Message
from zaprelay.services.events import (
    EventHub,
    EventType,
    create_sse_response,
    event_stream,
    get_event_hub,
)
from zaprelay.services.gateway import get_gateway
from zaprelay.services.gateway.base import BaseGateway
from zaprelay.services.store import ConversationStore, get_store, normalize_number

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Request bodies ---


class SendBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    number: str = Field(alias="numero", min_length=1)
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    agent_name: Optional[str] = Field(default=None, alias="agentName")
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @field_validator("number")
    @classmethod
    def number_has_digits(cls, value: str) -> str:
        if not normalize_number(value):
            raise ValueError("recipient number must contain digits")
        return value


class SendText(SendBase):
    message: str = Field(alias="mensagem", min_length=1)


class SendFile(SendBase):
    file_url: str = Field(alias="arquivoUrl", min_length=1)
    file_name: Optional[str] = Field(default=None, alias="fileName")
    message: Optional[str] = Field(default=None, alias="mensagem")


class SendImage(SendBase):
    image_url: str = Field(alias="imagemUrl", min_length=1)
    caption: Optional[str] = None


class SendButtons(SendBase):
    title: str = Field(alias="titulo", min_length=1)
    buttons: list[str] = Field(alias="botoes", min_length=1)


class SendList(SendBase):
    items: list[dict[str, Any]] = Field(alias="listaDeItens", min_length=1)
    title: Optional[str] = Field(default=None, alias="titulo")


# --- Helpers ---


def _outgoing(body: SendBase, kind: str, content: str, **extras: Any) -> Message:
    return Message(
        direction="outgoing",
        kind=kind,
        content=content,
        agent_id=body.agent_id,
        agent_name=body.agent_name,
        **extras,
    )


def _failure(error: UpstreamError, action: str) -> UpstreamError:
    logger.error(f"{action}: {error.message} (status {error.status_code})")
    return UpstreamError(action, status_code=error.status_code, details=error.message)


def _record_sent(
    store: ConversationStore,
    hub: EventHub,
    body: SendBase,
    message: Message,
    api_response: Any,
) -> dict[str, Any]:
    """Store an accepted outbound message and announce it."""
    conversation = store.append_message(body.number, message, display_name=body.display_name)
    logger.info(f"Sent {message.kind} message to {conversation.contact_number} (agent {body.agent_id})")
    payload = {"conversation": conversation.to_json(), "message": message.to_json()}
    hub.broadcast(EventType.MESSAGE.value, payload)
    return {"success": True, **payload, "apiResponse": api_response}


# --- Conversations ---


@router.get("/conversations")
async def list_conversations(store: ConversationStore = Depends(get_store)):
    return {
        "success": True,
        "conversations": [c.to_json() for c in store.list_conversations()],
    }


@router.get("/conversations/{number}/messages")
async def list_messages(number: str, store: ConversationStore = Depends(get_store)):
    return {
        "success": True,
        "messages": [m.to_json() for m in store.list_messages(number)],
    }


@router.post("/conversations/{number}/read")
async def mark_read(
    number: str,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
):
    conversation = store.mark_read(number)
    if conversation is None:
        logger.debug(f"Mark read: conversation {normalize_number(number)} not found")
        raise NotFound("Conversation not found")

    data = conversation.to_json()
    hub.broadcast(EventType.CONVERSATION.value, {"conversation": data})
    return {"success": True, "conversation": data}


# --- Send commands ---


@router.post("/messages/text")
async def send_text(
    body: SendText,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        api_response = await upstream.send_text(normalize_number(body.number), body.message)
    except UpstreamError as e:
        raise _failure(e, "Failed to send text message")
    message = _outgoing(body, "text", body.message)
    return _record_sent(store, hub, body, message, api_response)


@router.post("/messages/file")
async def send_file(
    body: SendFile,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        api_response = await upstream.send_file(normalize_number(body.number), body.file_url, body.file_name)
    except UpstreamError as e:
        raise _failure(e, "Failed to send file")
    message = _outgoing(
        body, "file", body.message or "File sent", media_url=body.file_url, file_name=body.file_name
    )
    return _record_sent(store, hub, body, message, api_response)


@router.post("/messages/image")
async def send_image(
    body: SendImage,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        api_response = await upstream.send_image(normalize_number(body.number), body.image_url, body.caption)
    except UpstreamError as e:
        raise _failure(e, "Failed to send image")
    message = _outgoing(
        body, "image", body.caption or "Image sent", media_url=body.image_url, caption=body.caption or None
    )
    return _record_sent(store, hub, body, message, api_response)


@router.post("/messages/buttons")
async def send_buttons(
    body: SendButtons,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        api_response = await upstream.send_buttons(normalize_number(body.number), body.title, body.buttons)
    except UpstreamError as e:
        raise _failure(e, "Failed to send buttons message")
    message = _outgoing(body, "buttons", body.title, buttons=body.buttons)
    return _record_sent(store, hub, body, message, api_response)


@router.post("/messages/list")
async def send_list(
    body: SendList,
    store: ConversationStore = Depends(get_store),
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        api_response = await upstream.send_list(normalize_number(body.number), body.items)
    except UpstreamError as e:
        raise _failure(e, "Failed to send list message")
    message = _outgoing(body, "list", body.title or "List sent", list_items=body.items)
    return _record_sent(store, hub, body, message, api_response)


# --- Session ---


@router.get("/status")
async def session_status(
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        status = await upstream.get_status()
    except UpstreamError as e:
        raise _failure(e, "Failed to fetch session status")
    hub.broadcast(EventType.STATUS.value, status)
    return {"success": True, "status": status}


@router.get("/qrcode")
async def qr_code(upstream: BaseGateway = Depends(get_gateway)):
    try:
        qr = await upstream.get_qr_code()
    except UpstreamError as e:
        raise _failure(e, "Failed to fetch QR code")
    return {"success": True, "qrCode": qr}


@router.post("/session/reconnect")
async def reconnect_session(
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        response = await upstream.reconnect()
    except UpstreamError as e:
        raise _failure(e, "Failed to reconnect session")
    hub.broadcast(EventType.STATUS.value, {"action": "reconnect", "response": response})
    return {"success": True, "response": response}


@router.post("/session/disconnect")
async def disconnect_session(
    hub: EventHub = Depends(get_event_hub),
    upstream: BaseGateway = Depends(get_gateway),
):
    try:
        response = await upstream.disconnect()
    except UpstreamError as e:
        raise _failure(e, "Failed to disconnect session")
    hub.broadcast(EventType.STATUS.value, {"action": "disconnect", "response": response})
    return {"success": True, "response": response}


# --- Live events & logs ---


@router.get("/events")
async def events(request: Request, hub: EventHub = Depends(get_event_hub)):
    return create_sse_response(
        event_stream(hub, request, heartbeat_interval=settings.sse_heartbeat_interval)
    )


@router.get("/logs")
async def recent_logs(limit: int = Query(default=100, ge=1, le=1000)):
    return {"success": True, "logs": get_log_buffer().entries(limit)}
