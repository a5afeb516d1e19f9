from __future__ import annotations

import os
from dataclasses import dataclass, field


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw not in {"0", "false", "False"}


@dataclass(frozen=True, slots=True)
class Settings:
    service_name: str = field(default_factory=lambda: _get_str("SERVICE_NAME", "jsonapi"))
    log_level: str = field(default_factory=lambda: _get_str("LOG_LEVEL", "INFO"))

    # Escape <, > and & in encoded responses so JSON bodies are safe to embed in HTML.
    json_escape_html: bool = field(default_factory=lambda: _get_bool("JSONAPI_ESCAPE_HTML", True))


settings = Settings()
