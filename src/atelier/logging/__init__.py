"""Logging subsystem for ATELIER.

Public API::

    from atelier.logging import configure_logging

    configure_logging(settings.logging)
"""

from atelier.logging.setup import configure_logging

__all__ = ["configure_logging"]
