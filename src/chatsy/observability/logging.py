"""JSON log lines for chatsy components.

Every line carries the service name and, inside a correlation scope, its id.
Callers pass context through extra={"extra_fields": safe_log_context(...)};
the formatter re-checks those fields so a careless call site cannot put
message text or credentials on stderr.

Log level comes from CHATSY_LOG_LEVEL (default INFO).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id
from .redaction import redact_string, redact_value

LOG_LEVEL_ENV = "CHATSY_LOG_LEVEL"
SERVICE_NAME = "chatsy"

# Field names that never carry a loggable value
FORBIDDEN_FIELDS = frozenset(
    {"text", "message", "prompt", "response", "api_key", "contact_name", "raw_identifier"}
)

_RESERVED = ("timestamp", "level", "logger", "service", "message", "correlationId")


def _field_value(key: str, value: Any) -> Any:
    if key in FORBIDDEN_FIELDS:
        return "[REDACTED]"
    if isinstance(value, str):
        return redact_string(value)
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return redact_value(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; timestamp is the record's creation time in UTC."""

    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "message": record.getMessage(),
        }
        cid = get_correlation_id()
        if cid:
            line["correlationId"] = cid
        if record.exc_info:
            line["exception"] = redact_string(self.formatException(record.exc_info))

        for key, value in getattr(record, "extra_fields", {}).items():
            if key not in _RESERVED:
                line[key] = _field_value(key, value)
        return json.dumps(line, default=str, ensure_ascii=False)


def _resolve_level() -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Logger writing JSON lines to stderr; configured on first use only."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(_resolve_level())
    logger.propagate = False
    return logger
