"""Z-API client - sends messages and manages the paired WhatsApp session."""

import logging
from typing import Any

import httpx

from zaprelay.core.config import settings
from zaprelay.core.errors import UpstreamError
from zaprelay.services.gateway.base import BaseGateway

logger = logging.getLogger(__name__)


class ZApiGateway(BaseGateway):
    """Z-API REST client scoped to one instance URL."""

    def __init__(
        self,
        base_url: str | None = None,
        client_token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.gateway_base_url).rstrip("/")
        self._client_token = settings.zapi_client_token if client_token is None else client_token
        self._timeout = timeout or settings.upstream_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._client_token:
            headers["Client-Token"] = self._client_token
        return headers

    async def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    f"{self._base_url}{endpoint}",
                    headers=self._headers(),
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Z-API {method} {endpoint} unreachable: {e}")
            raise UpstreamError(f"Failed to reach upstream: {e}") from e

        data: Any = None
        if resp.content:
            try:
                data = resp.json()
            except ValueError:
                logger.warning(f"Z-API {method} {endpoint} answered without JSON (status {resp.status_code})")

        if not resp.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("message") or data.get("error")
            raise UpstreamError(
                str(message) if message else f"Failed to communicate with upstream (status {resp.status_code})",
                status_code=resp.status_code,
                details=data,
            )
        return data

    # --- Messages ---

    async def send_text(self, phone: str, message: str) -> Any:
        return await self._request("POST", "/send-text", {"phone": phone, "message": message})

    async def send_file(self, phone: str, file_url: str, file_name: str | None = None) -> Any:
        return await self._request(
            "POST", "/send-file", {"phone": phone, "fileUrl": file_url, "fileName": file_name}
        )

    async def send_image(self, phone: str, image_url: str, caption: str | None = None) -> Any:
        return await self._request(
            "POST", "/send-image", {"phone": phone, "imageUrl": image_url, "caption": caption}
        )

    async def send_buttons(self, phone: str, title: str, buttons: list[str]) -> Any:
        return await self._request(
            "POST", "/send-buttons", {"phone": phone, "title": title, "buttons": buttons}
        )

    async def send_list(self, phone: str, items: list[dict[str, Any]]) -> Any:
        return await self._request("POST", "/send-list", {"phone": phone, "items": items})

    # --- Session ---

    async def get_status(self) -> Any:
        return await self._request("GET", "/status")

    async def get_qr_code(self) -> Any:
        return await self._request("GET", "/qr-code")

    async def reconnect(self) -> Any:
        return await self._request("POST", "/session/reconnect")

    async def disconnect(self) -> Any:
        return await self._request("POST", "/session/disconnect")
