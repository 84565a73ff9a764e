"""JSON logging for the agenda API.

Every line is one JSON object. Records about a single conversation carry
instance_id and contact at the top level so they can be filtered without
parsing the context.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

CONVERSATION_KEYS = ("instance_id", "contact")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        for key in CONVERSATION_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route everything through one stdout handler. Unknown level names fall back to INFO."""
    level_value = getattr(logging, level.upper(), None)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    root = logging.getLogger()
    root.setLevel(level_value)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for noisy in ("sqlalchemy.engine", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"agenda.{name}")


class ConversationLoggerAdapter(logging.LoggerAdapter):
    """Merges the bound conversation keys with a per-call context= mapping."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {**self.extra, **(kwargs.pop("context", None) or {})}
        if context:
            kwargs["extra"] = {"context": context}
        return msg, kwargs


def conversation_logger(name: str, instance_id: str, contact_number: str) -> ConversationLoggerAdapter:
    return ConversationLoggerAdapter(get_logger(name), {"instance_id": instance_id, "contact": contact_number})
