from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any


SERVICE_NAME = "fuelsymphony"

_RESERVED_LOG_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}

# Never written out, whatever logger passes them.
_SECRET_FIELDS = frozenset({"password", "access_token", "authorization", "jwt_secret", "supabase_anon_key", "apikey"})


def log_source(logger_name: str) -> str:
    """Component that emitted a record: "fuelsymphony.mutations" -> "mutations"."""
    prefix = f"{SERVICE_NAME}."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):]
    return logger_name


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "source": log_source(record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            if key == "source" and not value:
                continue
            payload[key] = "[redacted]" if key.lower() in _SECRET_FIELDS else value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_json_logging(level: str | int = logging.INFO, *, service: str = SERVICE_NAME) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)
