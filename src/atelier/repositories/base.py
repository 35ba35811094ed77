"""Order store contract.

The store is the only shared mutable resource in the system.  Every
write is conditional: :meth:`OrderStore.update_if_version` succeeds only
when the stored version still equals the caller's expected version, and
:meth:`OrderStore.upsert_milestone` succeeds only while the owning order
is in the required status.  Both are all-or-nothing.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from atelier.core.types import OrderStatus
    from atelier.models.order import Order
    from atelier.models.progress import ProgressState


class DuplicateOrderNumberError(Exception):
    """Raised by :meth:`OrderStore.insert` when the order number is taken."""


class OrderStore(abc.ABC):
    """Durable keyed storage for orders and their progress state."""

    # -- orders -------------------------------------------------------------

    @abc.abstractmethod
    def insert(self, order: Order) -> Order:
        """Persist a new order and return it with its assigned ``id``.

        The ``id`` on *order* is ignored.  Raises
        :class:`DuplicateOrderNumberError` if ``order_number`` exists.
        """

    @abc.abstractmethod
    def find_by_id(self, order_id: int) -> Order | None: ...

    @abc.abstractmethod
    def find_by_number(self, order_number: str) -> Order | None: ...

    @abc.abstractmethod
    def update_if_version(
        self,
        order_id: int,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Order | None:
        """Atomic compare-and-set write.

        Applies *changes* and bumps ``version`` only if the stored
        version equals *expected_version*.  Returns the updated order,
        or ``None`` if the order is missing or the version moved on.
        """

    @abc.abstractmethod
    def find_expired_pending(
        self,
        cutoff: datetime,
        limit: int | None = None,
    ) -> list[Order]:
        """Orders still PENDING, not accepted, with deadline before *cutoff*."""

    @abc.abstractmethod
    def find_by_party_paginated(
        self,
        *,
        customer_id: str | None = None,
        producer_id: str | None = None,
        status: OrderStatus | None = None,
        deadline_after: datetime | None = None,
        cursor: int | None = None,
        limit: int = 50,
    ) -> tuple[list[Order], int | None]:
        """Newest-first page of orders for one party.

        Returns ``(orders, next_cursor)`` where *next_cursor* is the last
        order's id, or ``None`` when there are no more results.
        """

    @abc.abstractmethod
    def producer_totals(self, producer_id: str) -> tuple[int, int, int, Decimal]:
        """Return ``(total, pending, completed, completed_revenue)``."""

    # -- progress -----------------------------------------------------------

    @abc.abstractmethod
    def find_progress(self, order_id: int) -> ProgressState | None: ...

    @abc.abstractmethod
    def upsert_milestone(
        self,
        order_id: int,
        name: str,
        completed: bool,
        *,
        required_status: OrderStatus,
        now: datetime,
    ) -> ProgressState | None:
        """Set ``name -> completed`` while the order holds *required_status*.

        The status check and the write happen atomically.  Returns
        ``None`` (and writes nothing) when the gate does not hold.
        """

    # -- health -------------------------------------------------------------

    def ping(self) -> bool:
        """Return True when the backing store is reachable."""
        return True
