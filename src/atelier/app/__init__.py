"""Flask application package for ATELIER.

Public API::

    from atelier.app import create_app
"""

from atelier.app.factory import create_app

__all__ = ["create_app"]
