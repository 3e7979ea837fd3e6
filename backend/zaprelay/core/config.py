from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "WhatsApp Relay"
    debug: bool = False

    # Gateway
    gateway_provider: str = "zapi"  # zapi
    upstream_timeout: float = 15.0

    # Z-API
    zapi_instance_id: str = ""
    zapi_token: str = ""
    zapi_client_token: str = ""  # account security token, sent as Client-Token
    zapi_base_url: str = ""
    zapi_api_url: str = "https://api.z-api.io"

    # Server
    host: str = "0.0.0.0"
    port: int = 4000
    allowed_origins: str = "*"  # comma separated

    # Live events
    sse_heartbeat_interval: float = 25.0
    sse_queue_size: int = 100

    # Recent logs kept in memory for /logs
    log_buffer_size: int = 500

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parent.parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @computed_field
    @property
    def gateway_base_url(self) -> str:
        """Explicit ZAPI_BASE_URL, or the instance URL built from its parts."""
        if self.zapi_base_url:
            return self.zapi_base_url.rstrip("/")
        api = self.zapi_api_url.rstrip("/")
        return f"{api}/instances/{self.zapi_instance_id}/token/{self.zapi_token}"

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    def missing_gateway_settings(self) -> list[str]:
        required = {
            "ZAPI_INSTANCE_ID": self.zapi_instance_id,
            "ZAPI_TOKEN": self.zapi_token,
        }
        return [name for name, value in required.items() if not value]


settings = Settings()
