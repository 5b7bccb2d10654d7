"""Structured Logging: one JSON object per record for retry and LLM call events.

Invariants:
    - Every line carries timestamp (record creation time, UTC), level, logger, message
    - Only whitelisted extra fields are emitted, and only when not None
    - Enum extras are written as their value, so error_kind reads "transport_error"
    - setup_logging is idempotent: calling it again replaces its own handler

Design Decisions:
    - Formatter on stdlib logging; the field whitelist is a constructor argument
      so an embedding app can add its own keys
    - setup_logging configures the "macrolens" logger, leaving the host app's
      root logger alone
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum

RETRY_LOG_FIELDS = (
    "operation_key", "attempt", "error_kind", "severity", "retryable",
    "context", "status_code", "input_tokens", "output_tokens",
)

_HANDLER_NAME = "macrolens-structured"
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def __init__(self, fields: tuple[str, ...] = RETRY_LOG_FIELDS):
        super().__init__()
        self.fields = fields

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key)
            for key in self.fields
            if getattr(record, key, None) is not None
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=_jsonable)


def setup_logging(
    level: str = "INFO", fmt: str = "json", logger_name: str = "macrolens",
) -> logging.Handler:
    """Attach a stream handler to logger_name. Returns the installed handler."""
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if existing.get_name() == _HANDLER_NAME:
            target.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        JSONFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT),
    )
    target.addHandler(handler)
    target.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
