"""RFC 7807 Problem Details for the order lifecycle core.

Provides :class:`OrderProblem`, an exception that renders itself as
an ``application/problem+json`` response, with one subclass per error
kind the engine, tracker and store can raise, plus a Flask
error-handler registration function.

Every kind carries its own ``type`` URN so a caller can tell "this
order already expired" from "please retry" without parsing text.

Usage::

    raise DeadlineExpired("The acceptance deadline has passed")
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Error-type URNs
# ---------------------------------------------------------------------------
_P = "urn:atelier:error:"

CONCURRENT_MODIFICATION = _P + "concurrentModification"
DEADLINE_EXPIRED = _P + "deadlineExpired"
INVALID_INPUT = _P + "invalidInput"
INVALID_STATE = _P + "invalidState"
INVALID_TRANSITION = _P + "invalidTransition"
NOT_FOUND = _P + "notFound"
SERVER_INTERNAL = _P + "serverInternal"
STORE_UNAVAILABLE = _P + "storeUnavailable"

# Content type for RFC 7807 responses
PROBLEM_CONTENT_TYPE = "application/problem+json"


# ---------------------------------------------------------------------------
# Problem exceptions
# ---------------------------------------------------------------------------


class OrderProblem(Exception):
    """An RFC 7807 *problem details* object that doubles as an exception.

    Raise anywhere in the core to signal a typed failure.  The registered
    Flask error handler catches it and calls :meth:`to_response`.

    Parameters
    ----------
    error_type:
        A URN string (one of the constants above) or ``"about:blank"``
        for generic HTTP errors.
    detail:
        Human-readable explanation of the problem.
    status:
        HTTP status code (default 400).
    title:
        Short summary; omitted when *error_type* is self-explanatory.
    headers:
        Extra HTTP headers to include on the response
        (e.g. ``Retry-After``).

    """

    #: Whether a caller may reload and try again.
    retryable: bool = False

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 400,
        *,
        title: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.extra_headers = headers or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the RFC 7807 JSON structure."""
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        if self.retryable:
            body["retryable"] = True
        return body

    def to_response(self):
        """Build a Flask :class:`~flask.Response`."""
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        for key, value in self.extra_headers.items():
            resp.headers[key] = value
        return resp


class InvalidInput(OrderProblem):
    """Malformed creation or milestone request."""

    def __init__(self, detail: str) -> None:
        super().__init__(INVALID_INPUT, detail, 400)


class NotFound(OrderProblem):
    """Unknown order id or order number."""

    def __init__(self, detail: str) -> None:
        super().__init__(NOT_FOUND, detail, 404)


class InvalidTransition(OrderProblem):
    """Action not legal from the order's current status."""

    def __init__(self, detail: str) -> None:
        super().__init__(INVALID_TRANSITION, detail, 409)


class DeadlineExpired(OrderProblem):
    """Accept/reject attempted after the acceptance window closed."""

    def __init__(self, detail: str) -> None:
        super().__init__(DEADLINE_EXPIRED, detail, 409)


class InvalidState(OrderProblem):
    """Milestone write against an order that is not ACCEPTED."""

    def __init__(self, detail: str) -> None:
        super().__init__(INVALID_STATE, detail, 409)


class ConcurrentModification(OrderProblem):
    """Optimistic-lock conflict: the stored version moved on."""

    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(CONCURRENT_MODIFICATION, detail, 409)


class StoreUnavailable(OrderProblem):
    """The order store could not be reached; nothing was written."""

    retryable = True

    def __init__(self, detail: str, retry_after: int = 5) -> None:
        super().__init__(
            STORE_UNAVAILABLE,
            detail,
            503,
            headers={"Retry-After": str(retry_after)},
        )


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(OrderProblem)
    def _handle_order_problem(exc: OrderProblem):
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        problem = OrderProblem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        )
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        log.exception("Unhandled exception during request")
        problem = OrderProblem(
            SERVER_INTERNAL,
            "An unexpected internal error occurred",
            500,
        )
        return problem.to_response()
