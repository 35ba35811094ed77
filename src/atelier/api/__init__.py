"""HTTP API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup to wire
the order, party and sweep blueprints into the Flask app.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints on the Flask application."""
    from atelier.api.orders import order_bp  # noqa: PLC0415
    from atelier.api.parties import party_bp  # noqa: PLC0415
    from atelier.api.sweep import sweep_bp  # noqa: PLC0415

    app.register_blueprint(order_bp)
    app.register_blueprint(party_bp)
    app.register_blueprint(sweep_bp)
