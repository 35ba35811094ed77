"""Structured logging configuration for ATELIER.

Provides JSON and text formatters, a request-context filter that
injects Flask ``g`` attributes into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler, SysLogHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atelier.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

_CONTEXT_ATTRS = ("request_id", "client_ip", "method", "path")


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields, the request context when present, and any
    *extra* attributes passed by the caller.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for attr in _CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value is not None and value != "-":
                data[attr] = value

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key in _CONTEXT_ATTRS or key.startswith("_"):
                continue
            data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(client_ip)s %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RequestContextFilter(logging.Filter):
    """Inject Flask request context into every log record.

    Adds ``request_id``, ``client_ip``, ``method`` and ``path`` from
    ``flask.g`` / ``flask.request`` when a request context is active.
    Outside a request (the sweeper thread, the CLI) ``request_id`` and
    ``client_ip`` fall back to ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        if not hasattr(record, "client_ip"):
            record.client_ip = "-"  # type: ignore[attr-defined]
        if not hasattr(record, "method"):
            record.method = None  # type: ignore[attr-defined]
        if not hasattr(record, "path"):
            record.path = None  # type: ignore[attr-defined]

        from flask import g, has_request_context, request  # noqa: PLC0415

        if has_request_context():
            record.request_id = getattr(g, "request_id", record.request_id)  # type: ignore[attr-defined]
            record.client_ip = request.remote_addr or record.client_ip  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]

        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``atelier`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    sets up the ``atelier.audit`` logger when ``settings.audit.enabled``.

    Returns the root ``atelier`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("atelier")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = RequestContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    access = logging.getLogger("atelier.access")
    access.setLevel(logging.INFO)

    audit = logging.getLogger("atelier.audit")
    audit.handlers.clear()
    if settings.audit.enabled:
        audit.setLevel(logging.INFO)

        if settings.audit.file:
            try:
                fh = RotatingFileHandler(
                    settings.audit.file,
                    maxBytes=settings.audit.max_file_size_bytes,
                    backupCount=settings.audit.backup_count,
                )
            except OSError as exc:
                root.warning("Could not open audit log file %s: %s", settings.audit.file, exc)
            else:
                # Audit records are always JSON
                fh.setFormatter(StructuredFormatter())
                fh.addFilter(ctx_filter)
                audit.addHandler(fh)

        if settings.audit.syslog:
            try:
                sh = SysLogHandler(address="/dev/log")
            except OSError as exc:
                root.warning("Could not connect audit log to syslog: %s", exc)
            else:
                sh.setFormatter(StructuredFormatter())
                sh.addFilter(ctx_filter)
                audit.addHandler(sh)
    else:
        audit.setLevel(logging.WARNING)

    for lib in ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
