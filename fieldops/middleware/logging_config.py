"""
Structured logging configuration.

``LOG_FORMAT`` picks the output: ``json`` for log aggregation (the production
default) or ``text`` for a terminal. ``LOG_LEVEL`` sets the threshold.

Inside a request every record is stamped with the request id and the session
user, so a service line such as "Recorded 3 work item(s) on job 12" can be
traced back to the crew member's call without passing context around.
Services add their own context through ``extra=`` (job_id, operation, kind).
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# LogRecord attributes lifted to top-level JSON fields when present
CONTEXT_KEYS = (
    "request_id",
    "user_id",
    "job_id",
    "operation",
    "kind",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_HANDLER_MARK = "_fieldops_handler"


class RequestContextFilter(logging.Filter):
    """Copy request id and session user from ``g`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                session = getattr(g, "session", None)
                record.user_id = session.user_id if session is not None else None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``12:04:55 INFO     fieldops.services.work_service [a1b2c3 op-7] message job=12``"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s%(context)s %(message)s%(suffix)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        tags = [str(v) for v in (getattr(record, "request_id", None), getattr(record, "user_id", None)) if v]
        record.context = f" [{' '.join(tags)}]" if tags else ""
        suffix = ""
        job_id = getattr(record, "job_id", None)
        if job_id is not None:
            suffix += f" job={job_id}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            suffix += f" [{duration:.0f}ms]"
        record.suffix = suffix
        return super().format(record)


def configure_logging(app):
    """Install one stderr handler on the root logger for this app."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if is_prod else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = (app.config.get("LOG_FORMAT") or ("json" if is_prod else "text")).lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)
    setattr(handler, _HANDLER_MARK, True)

    # Replace our previous handler so repeated create_app() calls do not stack
    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "reportlab"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
    return handler
