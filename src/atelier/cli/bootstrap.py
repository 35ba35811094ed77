"""Wiring shared by CLI subcommands that work outside a Flask app."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atelier.app.context import Container
    from atelier.config.atelier_config import AtelierConfig


def require_database(config: AtelierConfig, command: str) -> None:
    if config.settings.database is None:
        sys.stderr.write(f"error: '{command}' needs a 'database' section in the config\n")
        sys.exit(1)


def build_container(config: AtelierConfig) -> Container:
    """Services over the configured PostgreSQL store, no background worker."""
    from atelier.app.context import Container  # noqa: PLC0415
    from atelier.core.clock import SystemClock  # noqa: PLC0415
    from atelier.db import init_database  # noqa: PLC0415
    from atelier.repositories.order import OrderRepository  # noqa: PLC0415

    db = init_database(config.settings.database)
    return Container(config.settings, OrderRepository(db), SystemClock(), db=db)
