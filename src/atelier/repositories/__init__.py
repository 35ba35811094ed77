"""Order store implementations.

:class:`InMemoryOrderStore` keeps everything in process;
:class:`OrderRepository` persists to PostgreSQL.  Both honour the
compare-and-set contract of :class:`OrderStore`.
"""

from atelier.repositories.base import DuplicateOrderNumberError, OrderStore
from atelier.repositories.memory import InMemoryOrderStore
from atelier.repositories.order import OrderRepository

__all__ = [
    "DuplicateOrderNumberError",
    "InMemoryOrderStore",
    "OrderRepository",
    "OrderStore",
]
