"""Gateway client factory."""

from zaprelay.core.config import settings
from zaprelay.services.gateway.base import BaseGateway


def get_gateway() -> BaseGateway:
    """Factory function that returns the configured gateway client."""
    if settings.gateway_provider == "zapi":
        from zaprelay.services.gateway.zapi import ZApiGateway
        return ZApiGateway()
    else:
        raise ValueError(f"Unknown gateway provider: {settings.gateway_provider}")
