from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from .config import settings

# Structured fields copied from `extra=` into the JSON payload.
EXTRA_KEYS = ("method", "path", "pattern", "code")


class JsonFormatter(logging.Formatter):
    """One compact JSON object per record, stamped with the service name."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = settings.service_name if service is None else service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "message": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


def request_extra(method: str, path: str, **fields: Any) -> dict[str, Any]:
    """Build the `extra=` mapping for a per-request log line."""
    return {"method": method, "path": path, **fields}


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    # Unknown names come back as the string "Level <name>".
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    *, level: str | None = None, stream: IO[str] | None = None
) -> logging.Handler:
    """Route logs to a single JSON handler on the root logger.

    - Level comes from *level*, else Settings.log_level (LOG_LEVEL); unknown names mean INFO.
    - Calling again keeps the installed handler and only applies the new level.

    The library itself never calls this; it only logs through module loggers.
    """
    log_level = _level(level or settings.log_level)
    root = logging.getLogger()

    handler = next((h for h in root.handlers if isinstance(h.formatter, JsonFormatter)), None)
    if handler is None:
        # Replace handlers to avoid duplicate logs when the server reloads the app.
        root.handlers.clear()
        handler = logging.StreamHandler(stream=stream or sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)

    root.setLevel(log_level)
    handler.setLevel(log_level)
    return handler
