"""In-process order store.

Thread-safe; a single lock guards each read-modify-write so the
compare-and-set contract holds across request threads and the sweeper.
Used when no database is configured, and throughout the test suite.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from atelier.core.types import OrderStatus
from atelier.models.progress import ProgressState
from atelier.repositories.base import DuplicateOrderNumberError, OrderStore

if TYPE_CHECKING:
    from datetime import datetime

    from atelier.models.order import Order


class InMemoryOrderStore(OrderStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._orders: dict[int, Order] = {}
        self._numbers: dict[str, int] = {}
        self._progress: dict[int, ProgressState] = {}

    def insert(self, order: Order) -> Order:
        with self._lock:
            if order.order_number in self._numbers:
                msg = f"Order number {order.order_number} already exists"
                raise DuplicateOrderNumberError(msg)
            stored = replace(order, id=next(self._ids), version=1)
            self._orders[stored.id] = stored
            self._numbers[stored.order_number] = stored.id
            return stored

    def find_by_id(self, order_id: int) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def find_by_number(self, order_number: str) -> Order | None:
        with self._lock:
            order_id = self._numbers.get(order_number)
            return self._orders.get(order_id) if order_id is not None else None

    def update_if_version(
        self,
        order_id: int,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Order | None:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.version != expected_version:
                return None
            updated = replace(current, **changes, version=current.version + 1)
            self._orders[order_id] = updated
            return updated

    def find_expired_pending(
        self,
        cutoff: datetime,
        limit: int | None = None,
    ) -> list[Order]:
        with self._lock:
            rows = [
                o
                for o in self._orders.values()
                if o.status == OrderStatus.PENDING
                and not o.is_accepted
                and o.acceptance_deadline < cutoff
            ]
        rows.sort(key=lambda o: (o.acceptance_deadline, o.id))
        return rows[:limit] if limit is not None else rows

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
        with self._lock:
            candidates = list(self._orders.values())

        def _match(o: Order) -> bool:
            if customer_id is not None and o.customer_id != customer_id:
                return False
            if producer_id is not None and o.producer_id != producer_id:
                return False
            if status is not None and o.status != status:
                return False
            if deadline_after is not None and not (
                not o.is_accepted and o.acceptance_deadline > deadline_after
            ):
                return False
            return cursor is None or o.id < cursor

        rows = sorted(filter(_match, candidates), key=lambda o: o.id, reverse=True)
        page = rows[:limit]
        next_cursor = page[-1].id if len(rows) > limit else None
        return page, next_cursor

    def producer_totals(self, producer_id: str) -> tuple[int, int, int, Decimal]:
        with self._lock:
            mine = [o for o in self._orders.values() if o.producer_id == producer_id]
        completed = [o for o in mine if o.status == OrderStatus.COMPLETED]
        return (
            len(mine),
            sum(1 for o in mine if o.status == OrderStatus.PENDING),
            len(completed),
            sum((o.price for o in completed), Decimal(0)),
        )

    def find_progress(self, order_id: int) -> ProgressState | None:
        with self._lock:
            return self._progress.get(order_id)

    def upsert_milestone(
        self,
        order_id: int,
        name: str,
        completed: bool,
        *,
        required_status: OrderStatus,
        now: datetime,
    ) -> ProgressState | None:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.status != required_status:
                return None
            current = self._progress.get(order_id) or ProgressState(order_id=order_id)
            milestones = dict(current.milestones)
            milestones[name] = completed
            updated = ProgressState(
                order_id=order_id,
                milestones=milestones,
                version=current.version + 1,
                updated_at=now,
            )
            self._progress[order_id] = updated
            return updated
