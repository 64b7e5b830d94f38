"""Process-wide logging configuration for the raster service."""

import json
import logging
import sys
from datetime import datetime, timezone

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else arrived through `extra=`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_ALIASES = {"warn": "WARNING", "fatal": "CRITICAL"}


def parse_level(name: str) -> int:
    """Map a level name such as "info" or "warn" to its logging constant."""
    key = name.strip().lower()
    level = logging.getLevelName(_ALIASES.get(key, key.upper()))
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {name!r}")
    return level


class JsonFormatter(logging.Formatter):
    """One JSON object per line, including fields passed via `extra=`."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: str = "info", *, json_output: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    Raises ValueError for an unknown level so startup fails loudly.
    """
    resolved = parse_level(level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(resolved)
