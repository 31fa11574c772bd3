"""
Neighbourhood Pulse - Logging Setup

Applies LoggingConfig to the root logger. Modules log through
`logging.getLogger(__name__)` and pass structured context via `extra=`;
the json format renders that context alongside the message.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from neighbourhood_pulse.shared.config import LoggingConfig

# Attributes present on every LogRecord; anything else came from `extra=`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            payload["timestamp"] = self.formatTime(record)

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(config: LoggingConfig) -> None:
    """Configure the root logger from config. Safe to call more than once."""
    handler = logging.StreamHandler()
    if config.format == "json":
        handler.setFormatter(JsonFormatter(include_timestamp=config.include_timestamp))
    else:
        fmt = "%(name)s - %(levelname)s - %(message)s"
        if config.include_timestamp:
            fmt = "%(asctime)s - " + fmt
        handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(config.level.upper())
