"""Request parsing helpers shared by the API blueprints."""

from __future__ import annotations

from typing import Any

from flask import current_app, request

from atelier.app.errors import InvalidInput


def json_body() -> dict[str, Any]:
    """Return the request's JSON object or raise :class:`InvalidInput`."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        msg = "Request body must be a JSON object"
        raise InvalidInput(msg)
    return payload


def pagination() -> tuple[int | None, int]:
    """Parse ``cursor`` and ``limit`` query parameters.

    ``limit`` defaults to ``api.default_page_size`` and is clamped to
    ``api.max_page_size``.
    """
    api = current_app.config["ATELIER_SETTINGS"].api
    raw_cursor = request.args.get("cursor")
    raw_limit = request.args.get("limit")
    try:
        cursor = int(raw_cursor) if raw_cursor else None
        limit = int(raw_limit) if raw_limit else api.default_page_size
    except ValueError as err:
        msg = "cursor and limit must be integers"
        raise InvalidInput(msg) from err
    if limit < 1:
        msg = "limit must be at least 1"
        raise InvalidInput(msg)
    return cursor, min(limit, api.max_page_size)
