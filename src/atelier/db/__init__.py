"""Database subsystem for ATELIER.

Public API::

    from atelier.db import UnitOfWork, init_database, store_errors
"""

from atelier.db.errors import store_errors
from atelier.db.init import init_database
from atelier.db.unit_of_work import UnitOfWork

__all__ = [
    "UnitOfWork",
    "init_database",
    "store_errors",
]
