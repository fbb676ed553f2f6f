from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field

DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    log_level: str = "INFO"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    """Read settings from the environment."""

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    return Settings(
        cors_origins=origins or list(DEFAULT_ORIGINS),
        log_level=(os.getenv("CAID_LOG_LEVEL") or "INFO").strip().upper(),
        max_upload_bytes=_int_env("CAID_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def log_event(logger: logging.Logger, level: int, event: str, **fields: object) -> None:
    """Emit one compact JSON line per event."""

    payload = {"event": event, **{key: value for key, value in fields.items() if value is not None}}
    logger.log(level, json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str))
