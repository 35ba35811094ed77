"""Flask application factory for ATELIER.

Usage::

    from atelier.app import create_app
    from atelier.config import get_config
    from atelier.db import init_database

    settings = get_config().settings
    db  = init_database(settings.database) if settings.database else None
    app = create_app(config=get_config(), database=db)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from atelier.config.atelier_config import AtelierConfig
    from atelier.config.settings import AtelierSettings
    from atelier.core.clock import Clock
    from atelier.repositories.base import OrderStore
    from atelier.services.lifecycle import IdentityResolver

log = logging.getLogger(__name__)


def create_app(  # noqa: PLR0913
    config: AtelierConfig | None = None,
    database: Database | None = None,
    *,
    settings: AtelierSettings | None = None,
    store: OrderStore | None = None,
    clock: Clock | None = None,
    identity_resolver: IdentityResolver | None = None,
) -> Flask:
    """Create and configure the ATELIER Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`AtelierConfig`.  Falls back to :func:`get_config`
        when neither *config* nor *settings* is given.
    database:
        Initialised :class:`Database`.  When provided (and *store* is
        not), orders are persisted in PostgreSQL.
    settings:
        Typed settings to use directly instead of a loaded config.
    store:
        Explicit order store.  Defaults to the PostgreSQL repository
        when *database* is given, else the in-process store.
    clock:
        Time source; :class:`SystemClock` by default.
    identity_resolver:
        Optional customer/producer existence check.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if settings is None:
        if config is None:
            from atelier.config import get_config  # noqa: PLC0415

            config = get_config()
        settings = config.settings

    app = Flask("atelier")
    app.config["ATELIER_SETTINGS"] = settings
    app.config["ATELIER_CONFIG"] = config

    # -- Error handlers (RFC 7807) ------------------------------------------
    from atelier.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from atelier.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Dependency container -----------------------------------------------
    if store is None:
        if database is not None:
            from atelier.repositories.order import OrderRepository  # noqa: PLC0415

            store = OrderRepository(database)
        else:
            from atelier.repositories.memory import InMemoryOrderStore  # noqa: PLC0415

            log.warning("No database configured; orders are kept in memory only")
            store = InMemoryOrderStore()
    if clock is None:
        from atelier.core.clock import SystemClock  # noqa: PLC0415

        clock = SystemClock()

    from atelier.app.context import Container  # noqa: PLC0415

    container = Container(
        settings,
        store,
        clock,
        db=database,
        identity_resolver=identity_resolver,
    )
    app.extensions["container"] = container
    atexit.register(container.shutdown)

    # -- Background deadline sweep ------------------------------------------
    container.sweep_worker.start()

    # -- Routes -------------------------------------------------------------
    _register_health(app)

    from atelier.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    log.info("Flask application created")
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register ``/livez`` and ``/healthz`` probes."""
    from atelier import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Store reachability, pool usage and sweeper state."""
        result: dict = {"status": "ok", "version": __version__}
        checks: dict = {}
        container = app.extensions["container"]

        try:
            reachable = container.store.ping()
        except Exception:  # noqa: BLE001
            reachable = False
        checks["store"] = "connected" if reachable else "disconnected"
        if not reachable:
            result["status"] = "degraded"

        if container.db is not None:
            try:
                stats = container.db.get_stats()
                result["pool"] = {
                    "size": stats.get("pool_size", 0),
                    "available": stats.get("pool_available", 0),
                    "waiting": stats.get("requests_waiting", 0),
                }
            except Exception:  # noqa: BLE001
                log.debug("Failed to retrieve connection pool stats")

        worker = container.sweep_worker
        checks["sweeper"] = "running" if worker.is_running else "stopped"
        if worker.last_result is not None:
            result["last_sweep"] = worker.last_result.to_dict()

        checks["hooks"] = {
            "loaded": len(container.hook_registry.hook_names),
            "dispatched": container.hook_registry.dispatch_count,
            "errors": container.hook_registry.error_count,
        }

        result["checks"] = checks
        code = 200 if result["status"] == "ok" else 503
        return jsonify(result), code
