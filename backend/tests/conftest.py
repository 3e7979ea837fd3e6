"""Shared test fixtures for backend tests."""

from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from zaprelay.core.config import settings
from zaprelay.services.events import EventHub, get_event_hub
from zaprelay.services.gateway import get_gateway
from zaprelay.services.gateway.base import BaseGateway
from zaprelay.services.store import InMemoryConversationStore, get_store


class FakeGateway(BaseGateway):
    """Gateway stub that records calls and raises ``failure`` when it is set."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.failure: Exception | None = None
        self.response: Any = {"zaapId": "zaap-1", "messageId": "msg-1"}

    async def _call(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        if self.failure is not None:
            raise self.failure
        return self.response

    async def send_text(self, phone, message):
        return await self._call("send_text", phone, message)

    async def send_file(self, phone, file_url, file_name=None):
        return await self._call("send_file", phone, file_url, file_name)

    async def send_image(self, phone, image_url, caption=None):
        return await self._call("send_image", phone, image_url, caption)

    async def send_buttons(self, phone, title, buttons):
        return await self._call("send_buttons", phone, title, buttons)

    async def send_list(self, phone, items):
        return await self._call("send_list", phone, items)

    async def get_status(self):
        return await self._call("get_status")

    async def get_qr_code(self):
        return await self._call("get_qr_code")

    async def reconnect(self):
        return await self._call("reconnect")

    async def disconnect(self):
        return await self._call("disconnect")


class RecordingHub(EventHub):
    """EventHub that also remembers every broadcast."""

    def __init__(self) -> None:
        super().__init__(queue_size=100)
        self.sent: list[tuple[str, Any]] = []

    def broadcast(self, event: str, payload: Any) -> int:
        self.sent.append((event, payload))
        return super().broadcast(event, payload)


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def hub():
    return RecordingHub()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(store, hub, gateway):
    """FastAPI TestClient with credentials set and in-memory deps swapped in."""
    with (
        patch.object(settings, "zapi_instance_id", "test-instance"),
        patch.object(settings, "zapi_token", "test-token"),
    ):
        from zaprelay.main import app

        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_event_hub] = lambda: hub
        app.dependency_overrides[get_gateway] = lambda: gateway

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()
