"""Programmatic gunicorn runner for ATELIER.

Starts gunicorn with settings derived from the ATELIER config
rather than requiring a separate gunicorn config file.

Usage::

    from atelier.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gunicorn.app.base import BaseApplication

if TYPE_CHECKING:
    from flask import Flask

    from atelier.config.settings import ServerSettings

log = logging.getLogger(__name__)


class AtelierGunicorn(BaseApplication):
    """Serves an already-built Flask app with options from :class:`ServerSettings`."""

    def __init__(self, flask_app: Flask, server: ServerSettings) -> None:
        self.application = flask_app
        self._server = server
        super().__init__()

    def load_config(self) -> None:
        s = self._server
        self.cfg.set("bind", f"{s.bind}:{s.port}")
        self.cfg.set("workers", s.workers)
        self.cfg.set("worker_class", s.worker_class)
        self.cfg.set("timeout", s.timeout)
        self.cfg.set("graceful_timeout", s.graceful_timeout)
        self.cfg.set("keepalive", s.keepalive)
        if s.max_requests:
            self.cfg.set("max_requests", s.max_requests)
        if s.max_requests_jitter:
            self.cfg.set("max_requests_jitter", s.max_requests_jitter)
        # Access logging is done by atelier.access
        self.cfg.set("accesslog", None)

    def load(self) -> Flask:
        return self.application


def run_gunicorn(app: Flask, settings: ServerSettings) -> None:
    """Start a gunicorn server from ATELIER :class:`ServerSettings`."""
    log.info(
        "Starting gunicorn on %s:%s (%d workers, %s)",
        settings.bind,
        settings.port,
        settings.workers,
        settings.worker_class,
    )
    AtelierGunicorn(app, settings).run()
