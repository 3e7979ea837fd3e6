"""Error taxonomy for the relay.

Every error renders to the same JSON envelope the UI expects:
``{"success": false, "message": ..., "details": ...}``.
"""

from typing import Any


class RelayError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(RelayError):
    """Caller-supplied request is missing required fields."""

    status_code = 400
    default_message = "Missing or invalid fields"


class BadPayload(RelayError):
    """Webhook body is not a JSON object."""

    status_code = 400
    default_message = "Invalid payload"


class UpstreamError(RelayError):
    """The gateway answered with a non-2xx status or could not be reached."""

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code or 500


class NotFound(RelayError):
    status_code = 404
    default_message = "Not found"


class RouteNotFound(NotFound):
    default_message = "Route not found"


class InternalError(RelayError):
    status_code = 500
