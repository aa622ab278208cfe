"""
Logging utilities for Label Station.

- RequestIdFilter attaches request_id and path inside a Flask request, and the
  thread name elsewhere so monitor ticks can be told apart
- JsonFormatter for structured logs when LABELSTATION_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console
"""

from __future__ import annotations

import logging
import os
import threading


class RequestIdFilter(logging.Filter):
    """
    Attach request-scoped metadata (request_id, path) to log records.
    Outside of a Flask request the request_id falls back to the thread name.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            from flask import g, has_request_context, request  # lazy import

            if has_request_context():
                record.request_id = getattr(g, "request_id", "-")
                record.path = request.path
                return True
        except Exception:
            pass
        record.request_id = threading.current_thread().name
        record.path = "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter that includes timestamp, level, logger, message and request_id.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        path = getattr(record, "path", None)
        if path not in (None, "-"):
            base["path"] = path
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging() -> logging.Logger:
    """
    Configure root logging for the station.

    Behavior:
    - Sets root logger to LABELSTATION_LOG_LEVEL (INFO by default)
    - Clears any existing handlers to avoid duplicates on reload
    - Chooses JSON or plain formatter based on LABELSTATION_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Ensures Flask app logger propagates to root

    Returns the configured root logger.
    """
    root = logging.getLogger()
    level_name = os.environ.get("LABELSTATION_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    root.handlers = []

    json_logs = os.environ.get("LABELSTATION_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(request_id)s %(name)s: %(message)s")

    # Prefer systemd journal when available
    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler(SYSLOG_IDENTIFIER="label-station")
    except Exception:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    flask_logger = logging.getLogger("flask.app")
    flask_logger.handlers = []
    flask_logger.propagate = True

    # watchdog's inotify internals are chatty at DEBUG
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    return root


__all__ = ["JsonFormatter", "RequestIdFilter", "configure_logging"]
