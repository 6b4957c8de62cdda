"""Logging setup for Comment Guard.

Events are logged as snake_case names with ``extra=`` context. The JSON
formatter lifts the fields that tie an event to one evaluation (entity,
provider, model, backoff key) to the top level so a log pipeline can group
by them, and keeps everything else under ``context``.

Provider credentials travel through config objects and request headers,
never through log context, but keys or values that look like credentials
are masked anyway. Raw provider bodies can be large, so context strings are
clipped.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Optional

__all__ = [
    "CORRELATION_FIELDS",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
]

ROOT_LOGGER = "commentguard"

CORRELATION_FIELDS = ("entity_id", "provider", "model", "backoff_key")

MAX_CONTEXT_CHARS = 500
REDACTED = "[REDACTED]"

_SECRET_KEY = re.compile(r"(^|_)(api_?key|authorization|token|secret|password)$", re.IGNORECASE)
# OpenRouter / OpenAI style keys and bearer headers
_SECRET_VALUE = re.compile(r"\b(sk-[A-Za-z0-9_-]{8,}|Bearer\s+\S+)")

# Attributes every LogRecord carries; anything else came from extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _scrub(key: str, value: Any) -> Any:
    if _SECRET_KEY.search(key):
        return REDACTED
    if isinstance(value, str):
        value = _SECRET_VALUE.sub(REDACTED, value)
        if len(value) > MAX_CONTEXT_CHARS:
            value = value[:MAX_CONTEXT_CHARS] + "...[truncated]"
    return value


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: _scrub(key, value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: ``timestamp`` (record creation time, UTC, ``Z`` suffix), ``level``,
    ``logger``, ``event``, any of CORRELATION_FIELDS present on the record,
    ``context`` for the remaining extras and ``exception`` when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": _SECRET_VALUE.sub(REDACTED, record.getMessage()),
        }

        context = _extras(record)
        for name in CORRELATION_FIELDS:
            if context.get(name) is not None:
                entry[name] = context.pop(name)
            else:
                context.pop(name, None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Single-line text for local runs: event followed by correlation fields."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _extras(record)
        tags = [f"{name}={context[name]}" for name in CORRELATION_FIELDS if context.get(name)]
        return f"{line} [{' '.join(tags)}]" if tags else line


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Attach one handler to the ``commentguard`` logger.

    Arguments win over COMMENTGUARD_LOG_LEVEL / COMMENTGUARD_LOG_FORMAT,
    which mirror ``GuardConfig.log_level`` / ``log_format`` so scripts can
    pass a loaded config through. Safe to call repeatedly.
    """
    level = (level or os.getenv("COMMENTGUARD_LOG_LEVEL") or "INFO").upper()
    log_format = (log_format or os.getenv("COMMENTGUARD_LOG_FORMAT") or "json").lower()
    formatter = TextFormatter() if log_format == "text" else StructuredFormatter()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level, logging.INFO))

    if not logger.handlers:
        logger.addHandler(logging.StreamHandler())
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    # Host applications keep their own root config
    logger.propagate = False
