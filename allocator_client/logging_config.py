"""Structured logging configuration.

Configures Python logging to emit either JSON entries (the default) or plain
text lines. JSON entries always carry timestamp, level, logger and message;
contextual fields are added from the ``extra`` dict on log calls (endpoint,
probe_target, attempt, retries_left, delay_seconds for the retry loop;
unit_id, protocol, address, duration_ms for load units).

SECURITY: Never logs private key or certificate material.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone


# PEM blocks and key-like assignments that should be redacted from log output
_SENSITIVE_PATTERNS = re.compile(
    r"(-----BEGIN [A-Z ]+-----.*?-----END [A-Z ]+-----"
    r"|(private.key|client.key|password|token|secret)[\s]*[=:]\s*\S+)",
    re.IGNORECASE | re.DOTALL,
)

_CONTEXT_FIELDS = (
    "endpoint",
    "probe_target",
    "attempt",
    "retries_left",
    "delay_seconds",
    "unit_id",
    "protocol",
    "address",
    "duration_ms",
)


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: timestamp, level, logger, message.
    Additional fields can be attached via the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._sanitize(record.getMessage()),
        }

        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if hasattr(record, "error_reason"):
            entry["error_reason"] = self._sanitize(str(getattr(record, "error_reason")))

        # Exception info
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self._sanitize(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)

    @staticmethod
    def _sanitize(text: str) -> str:
        """Remove sensitive values from log text."""
        return _SENSITIVE_PATTERNS.sub("[REDACTED]", text)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the root logger.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    fmt:
        ``json`` for structured entries, ``text`` for human-readable lines.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    if fmt == "text":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    # httpx logs every probe request at INFO
    if root.level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
