"""Structured logging setup for the field network service.

JSON output is the default so logs can be shipped as-is; text output is
meant for running on a laptop at the scoring table.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from fieldnet.config import settings

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def _record_extras(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class FieldnetJSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def __init__(self, device_name: str = "field"):
        super().__init__()
        self.device_name = device_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": "fieldnet",
            "device": self.device_name,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class FieldnetTextFormatter(logging.Formatter):
    """Human-readable single-line format."""

    def __init__(self, device_name: str = "field"):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(device)s] %(name)s: %(message)s",
        )
        self.device_name = device_name

    def format(self, record: logging.LogRecord) -> str:
        record.device = self.device_name[:12]
        return super().format(record)


def setup_logging(device_name: str = "field") -> None:
    """Configure the root logger from settings."""
    if settings.log_format == "text":
        formatter: logging.Formatter = FieldnetTextFormatter(device_name=device_name)
    else:
        formatter = FieldnetJSONFormatter(device_name=device_name)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # httpx logs every request at INFO, which drowns out the poll loop.
    logging.getLogger("httpx").setLevel(logging.WARNING)
