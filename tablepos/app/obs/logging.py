import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..middlewares.request_id import current_request_id

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
PHONE_RE = re.compile(r"\+?\b\d{10,12}\b")

# Optional ``extra=`` keys copied onto the JSON line when present
CONTEXT_FIELDS = ("restaurant", "order_id", "table", "route", "status", "latency_ms")


def _redact_pii(text: str) -> str:
    """Mask customer emails and phone numbers."""
    return PHONE_RE.sub("***", EMAIL_RE.sub("***", text))


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "req_id", None) is None:
            record.req_id = current_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, PII masked in the message."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
            "msg": _redact_pii(record.getMessage()),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route every logger through a single JSON handler on stderr."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
