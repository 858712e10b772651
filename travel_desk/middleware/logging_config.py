"""
Logging setup for the travel desk.

Services tag their log calls with ``extra={"event_type": ..., ...}``.
Production writes one JSON object per line with those tags as keys;
development writes a single readable line with the tags appended.
LOG_LEVEL overrides the default level.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# ``extra={...}`` keys the workflow, email and settings services attach.
EXTRA_FIELDS = (
    "event_type",
    "application_id",
    "action",
    "actor_id",
    "recipient",
    "sections",
)


def _extras(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in EXTRA_FIELDS
            if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extras(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: [event] message application=... actor=...``"""

    def format(self, record: logging.LogRecord) -> str:
        extras = _extras(record)
        event = extras.pop("event_type", None)
        line = "{} {:<7} {}: {}{}".format(
            datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
            record.levelname,
            record.name,
            f"[{event}] " if event else "",
            record.getMessage(),
        )
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Attach a single stderr handler to the root logger.

    JSON outside DEBUG and TESTING, readable lines otherwise.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "smtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)
