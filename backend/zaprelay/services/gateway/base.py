"""Abstract WhatsApp gateway interface. All gateway clients must implement this."""

from abc import ABC, abstractmethod
from typing import Any


class BaseGateway(ABC):
    """One coroutine per upstream capability.

    Every call is a single attempt; failures raise ``UpstreamError`` and the
    caller decides whether to surface them.
    """

    @abstractmethod
    async def send_text(self, phone: str, message: str) -> Any:
        ...

    @abstractmethod
    async def send_file(self, phone: str, file_url: str, file_name: str | None = None) -> Any:
        ...

    @abstractmethod
    async def send_image(self, phone: str, image_url: str, caption: str | None = None) -> Any:
        ...

    @abstractmethod
    async def send_buttons(self, phone: str, title: str, buttons: list[str]) -> Any:
        ...

    @abstractmethod
    async def send_list(self, phone: str, items: list[dict[str, Any]]) -> Any:
        ...

    @abstractmethod
    async def get_status(self) -> Any:
        """Connection state of the paired WhatsApp session."""
        ...

    @abstractmethod
    async def get_qr_code(self) -> Any:
        """Pairing QR code for an unpaired session."""
        ...

    @abstractmethod
    async def reconnect(self) -> Any:
        ...

    @abstractmethod
    async def disconnect(self) -> Any:
        ...
