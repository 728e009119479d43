"""Logging configuration for the docupload client."""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Context variable holding the remote session id of the upload in progress
upload_session_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "upload_session_id", default=None
)

# Attributes every LogRecord carries; anything else on a record came from ``extra``
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Single-line JSON formatter for log shippers.

    Extra fields passed through ``logger.info(..., extra={...})`` are copied
    into the JSON object, and the current upload session id is attached when
    one is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self._utc_timestamp(record),
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        session_id = upload_session_context.get()
        if session_id:
            entry["upload_session_id"] = session_id

        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _RESERVED_RECORD_ATTRS
        )

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = self.formatException(record.exc_info)
            entry["exception_type"] = exc_type.__name__ if exc_type else "Unknown"
            entry["exception_message"] = str(exc_value) if exc_value else ""

        return json.dumps(entry, default=str, ensure_ascii=False)

    @staticmethod
    def _utc_timestamp(record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def setup_logging() -> None:
    """Configure logging for applications embedding the upload client.

    Local environments get a plain text format at DEBUG level. Any other
    environment gets JSON lines at ``LOG_LEVEL``.
    """
    from docupload.core.config import settings

    if settings.ENV == "local":
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)

    if settings.ENV == "local":
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = JsonLogFormatter()

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))
