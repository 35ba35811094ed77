"""Per-request hooks: correlation id, security header and access log.

Each access-log record carries the order or party the request was
about, taken from the matched URL rule, so one order's history can be
pulled out of the structured log with a single filter on ``order_id``.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from flask import g, request

if TYPE_CHECKING:
    from flask import Flask, Response

access_log = logging.getLogger("atelier.access")

# URL rule variables copied into the access-log record.
_ROUTE_KEYS = ("order_id", "order_number", "milestone", "producer_id", "customer_id")


def register_request_hooks(app: Flask) -> None:
    """Install the request-id, header and access-log hooks on *app*."""

    @app.before_request
    def _start_request() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g.start_time = time.monotonic()

    @app.after_request
    def _finish_request(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        _log_access(response)
        return response


def _log_access(response: Response) -> None:
    status = response.status_code
    duration_ms = _elapsed_ms()
    if status >= 500:
        level = logging.ERROR
    elif status == 409 or status < 400:
        # 409 is a stale version or a lost compare-and-set.
        level = logging.INFO
    else:
        level = logging.WARNING
    access_log.log(
        level,
        "%s %s %s %.1fms",
        request.method,
        request.path,
        status,
        duration_ms,
        extra=_access_extra(response, duration_ms),
    )


def _access_extra(response: Response, duration_ms: float) -> dict[str, Any]:
    extra: dict[str, Any] = {
        "status": response.status_code,
        "duration_ms": round(duration_ms, 1),
        "endpoint": request.endpoint,
    }
    view_args = request.view_args or {}
    for key in _ROUTE_KEYS:
        if key in view_args:
            extra[key] = view_args[key]
    if response.is_json and response.status_code >= 400:
        body = response.get_json(silent=True) or {}
        if "type" in body:
            extra["problem_type"] = body["type"]
    return extra


def _elapsed_ms() -> float:
    start = getattr(g, "start_time", None)
    if start is None:
        return 0.0
    return (time.monotonic() - start) * 1000
