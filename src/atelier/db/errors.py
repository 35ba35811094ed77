"""Translation of database failures into order-store problems.

PyPGKit and psycopg raise their own exception types for connectivity
trouble.  :func:`store_errors` wraps repository calls so that pool
exhaustion, broken connections and an unreachable server all surface as
:class:`~atelier.app.errors.StoreUnavailable`, which is safe to retry
because nothing was committed.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import psycopg
from psycopg_pool import PoolTimeout
from pypgkit import DatabaseConnectionError, RepositoryError

from atelier.app.errors import StoreUnavailable

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

_BUSY = "Order store is busy; please retry"
_UNREACHABLE = "Order store is unreachable; please retry"

_CAUGHT = (psycopg.OperationalError, DatabaseConnectionError, RepositoryError)


def _unavailable(exc: BaseException) -> StoreUnavailable | None:
    """Map *exc* (or the driver error it wraps) to StoreUnavailable."""
    if isinstance(exc, RepositoryError) and exc.__cause__ is not None:
        exc = exc.__cause__
    if isinstance(exc, PoolTimeout):
        log.warning("Connection pool exhausted: %s", exc)
        return StoreUnavailable(_BUSY)
    if isinstance(exc, (psycopg.OperationalError, DatabaseConnectionError)):
        log.warning("Database operational error: %s", exc)
        return StoreUnavailable(_UNREACHABLE)
    return None


@contextlib.contextmanager
def store_errors() -> Iterator[None]:
    """Re-raise connectivity failures as :class:`StoreUnavailable`."""
    try:
        yield
    except _CAUGHT as exc:
        problem = _unavailable(exc)
        if problem is None:
            raise
        raise problem from exc
