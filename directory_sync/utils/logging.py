"""
Logging setup for Directory Sync.

Every module logs through `get_logger(__name__)` with a bracketed event tag
leading the message (`[SYNC START]`, `[STORE COMMIT]`, `[STREAM STOP]`, ...)
and structured context passed via `extra=`. `configure_logging` is called once
by the CLI; library users may configure logging themselves instead.

With `json_logs=True` each line is one JSON object: the event tag is split
out into an `event` field and every `extra=` key becomes a top-level field,
so a sync can be followed with `jq 'select(.event == "SYNC FAILED")'`.
"""

from __future__ import annotations

import json
import logging
import logging.config
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"

# httpx/httpcore log every request at INFO; the synchronizer already logs fetches.
QUIET_LOGGERS = ("httpx", "httpcore")

_EVENT_TAG = re.compile(r"^\[(?P<event>[A-Z][A-Z ]*)\]\s*")

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "extra"}


def _record_payload(record: logging.LogRecord) -> Dict[str, Any]:
    message = record.getMessage()
    payload: Dict[str, Any] = {
        "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
    }
    match = _EVENT_TAG.match(message)
    if match:
        payload["event"] = match.group("event")
        message = message[match.end():] or match.group("event")
    payload["message"] = message

    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS and not key.startswith("_"):
            payload[key] = value
    # `extra={"extra": {...}}` is merged as well.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)

    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return payload


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the event tag and extras promoted."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return json.dumps(_record_payload(record), default=str)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Install a single stderr handler on the root logger.

    Parameters
    ----------
    level : str
        Level name for the root logger, e.g. "DEBUG" to see query stream
        transitions.
    json_logs : bool
        Emit JSON lines instead of the console format.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {"format": CONSOLE_FORMAT, "datefmt": CONSOLE_DATEFMT},
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "stream": "ext://sys.stderr",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"handlers": ["stderr"], "level": level.upper()},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
