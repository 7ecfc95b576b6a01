"""JSON logging for the service and its audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "askdocs.audit"
AUDIT_FILE_NAME = "audit.log"
AUDIT_MAX_BYTES = 5 * 1024 * 1024
AUDIT_BACKUP_COUNT = 3

# Chatty third-party loggers kept at WARNING regardless of the service level.
_QUIET_LOGGERS = ("chromadb", "urllib3", "httpx", "multipart")

# Attributes present on every LogRecord; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def _utc_timestamp(created: float) -> str:
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """Render each record as one JSON object.

    Dict messages are merged into the object so structured events keep their
    keys; any ``extra`` attributes are appended as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", log_dir: Path | str = "logs") -> None:
    """Send JSON logs to stderr and audit events to a rotating file in *log_dir*."""

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "audit_file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_dir / AUDIT_FILE_NAME),
                    "maxBytes": AUDIT_MAX_BYTES,
                    "backupCount": AUDIT_BACKUP_COUNT,
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {"level": level.upper(), "handlers": ["console"]},
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["audit_file"],
                    "propagate": False,
                },
                **{name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            },
        }
    )


def audit(event: str, **fields: Any) -> None:
    """Append one record to the audit trail (uploads, questions, deletions)."""

    logging.getLogger(AUDIT_LOGGER_NAME).info({"event": event, **fields})


__all__ = ["AUDIT_LOGGER_NAME", "MinimalJSONFormatter", "audit", "configure_logging"]
