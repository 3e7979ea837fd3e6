"""In-memory ring of recent log records, served by the logs endpoint."""

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from zaprelay.core.config import settings

_handler: "RecentLogHandler | None" = None


class RecentLogHandler(logging.Handler):
    def __init__(self, capacity: int = 500, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._entries: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._entries.append({
                "id": str(uuid.uuid4()),
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            })
        except Exception:
            self.handleError(record)

    def entries(self, limit: int | None = None) -> list[dict[str, Any]]:
        items = list(self._entries)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        self._entries.clear()


def get_log_buffer() -> RecentLogHandler:
    """Return the shared buffer, attaching it to the package logger on first use."""
    global _handler
    if _handler is None:
        _handler = RecentLogHandler(settings.log_buffer_size)
        logging.getLogger("zaprelay").addHandler(_handler)
    return _handler
