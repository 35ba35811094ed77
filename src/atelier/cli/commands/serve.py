"""Serve subcommand: start the ATELIER server."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    """Start the ATELIER server."""
    from atelier.app import create_app
    from atelier.db import init_database

    settings = config.settings
    db = init_database(settings.database) if settings.database else None
    app = create_app(config=config, database=db)

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=settings.server.bind,
            port=settings.server.port,
            debug=True,
            use_reloader=False,
        )
    else:
        from atelier.server.gunicorn_app import run_gunicorn

        run_gunicorn(app, settings.server)
