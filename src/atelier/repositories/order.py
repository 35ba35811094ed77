"""PostgreSQL order store."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, RepositoryError

from atelier.core.types import OrderStatus, RejectionReason
from atelier.db.errors import store_errors
from atelier.db.unit_of_work import UnitOfWork
from atelier.models.order import Order
from atelier.models.progress import ProgressState
from atelier.repositories.base import DuplicateOrderNumberError, OrderStore

if TYPE_CHECKING:
    from datetime import datetime

# Columns the lifecycle engine may change through update_if_version.
_UPDATABLE = frozenset(
    {
        "status",
        "is_accepted",
        "accepted_at",
        "completed_at",
        "rejection_reason",
        "updated_at",
    }
)


class OrderRepository(BaseRepository[Order], OrderStore):
    table_name = "orders"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Order:
        reason = row.get("rejection_reason")
        return Order(
            id=row["id"],
            order_number=row["order_number"],
            customer_id=row["customer_id"],
            producer_id=row["producer_id"],
            price=Decimal(row["price"]),
            status=OrderStatus(row["status"]),
            acceptance_deadline=row["acceptance_deadline"],
            description=row.get("description") or "",
            product_name=row.get("product_name") or "",
            payment_reference=row.get("payment_reference"),
            attributes=row.get("attributes") or {},
            is_accepted=row["is_accepted"],
            accepted_at=row.get("accepted_at"),
            completed_at=row.get("completed_at"),
            rejection_reason=RejectionReason(reason) if reason else None,
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Order) -> dict:
        return {
            "order_number": entity.order_number,
            "customer_id": entity.customer_id,
            "producer_id": entity.producer_id,
            "price": entity.price,
            "description": entity.description,
            "product_name": entity.product_name,
            "payment_reference": entity.payment_reference,
            "attributes": Jsonb(dict(entity.attributes)),
            "status": entity.status.value,
            "is_accepted": entity.is_accepted,
            "acceptance_deadline": entity.acceptance_deadline,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    @staticmethod
    def _to_column(value: Any) -> Any:  # noqa: ANN401
        return value.value if hasattr(value, "value") else value

    # -- orders -------------------------------------------------------------

    def insert(self, order: Order) -> Order:
        try:
            with store_errors():
                return self.create(order)
        except RepositoryError as exc:
            if isinstance(exc.__cause__, UniqueViolation):
                msg = f"Order number {order.order_number} already exists"
                raise DuplicateOrderNumberError(msg) from exc
            raise

    def find_by_id(self, order_id: int) -> Order | None:
        with store_errors():
            return super().find_by_id(order_id)

    def find_by_number(self, order_number: str) -> Order | None:
        with store_errors():
            return self.find_one_by({"order_number": order_number})

    def update_if_version(
        self,
        order_id: int,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Order | None:
        """Atomic compare-and-swap on ``version``.

        Returns the updated order, or None if the stored version did
        not match *expected_version*.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            msg = f"Columns not updatable via compare-and-set: {sorted(unknown)}"
            raise ValueError(msg)

        set_parts = [f"{col} = %s" for col in changes]
        set_parts.append("version = version + 1")
        params: list = [self._to_column(v) for v in changes.values()]
        params.extend([order_id, expected_version])

        with store_errors():
            row = self._db.fetch_one(
                f"UPDATE orders SET {', '.join(set_parts)} "
                "WHERE id = %s AND version = %s RETURNING *",
                tuple(params),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def find_expired_pending(
        self,
        cutoff: datetime,
        limit: int | None = None,
    ) -> list[Order]:
        sql = (
            "SELECT * FROM orders "
            "WHERE status = %s "
            "  AND NOT is_accepted "
            "  AND acceptance_deadline < %s "
            "ORDER BY acceptance_deadline, id"
        )
        params: list = [OrderStatus.PENDING.value, cutoff]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        with store_errors():
            rows = self._db.fetch_all(sql, tuple(params), as_dict=True)
        return [self._row_to_entity(r) for r in rows]

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
        conditions: list[str] = []
        params: list = []
        if customer_id is not None:
            conditions.append("customer_id = %s")
            params.append(customer_id)
        if producer_id is not None:
            conditions.append("producer_id = %s")
            params.append(producer_id)
        if status is not None:
            conditions.append("status = %s")
            params.append(status.value)
        if deadline_after is not None:
            conditions.append("NOT is_accepted AND acceptance_deadline > %s")
            params.append(deadline_after)
        if cursor is not None:
            conditions.append("id < %s")
            params.append(cursor)

        where = f"WHERE {' AND '.join(conditions)} " if conditions else ""
        # Fetch limit+1 to detect whether there is a next page
        params.append(limit + 1)
        with store_errors():
            rows = self._db.fetch_all(
                f"SELECT * FROM orders {where}ORDER BY id DESC LIMIT %s",
                tuple(params),
                as_dict=True,
            )
        orders = [self._row_to_entity(r) for r in rows[:limit]]
        next_cursor = orders[-1].id if len(rows) > limit else None
        return orders, next_cursor

    def producer_totals(self, producer_id: str) -> tuple[int, int, int, Decimal]:
        with store_errors():
            row = self._db.fetch_one(
                "SELECT COUNT(*) AS total, "
                "       COUNT(*) FILTER (WHERE status = %s) AS pending, "
                "       COUNT(*) FILTER (WHERE status = %s) AS completed, "
                "       COALESCE(SUM(price) FILTER (WHERE status = %s), 0) AS revenue "
                "FROM orders WHERE producer_id = %s",
                (
                    OrderStatus.PENDING.value,
                    OrderStatus.COMPLETED.value,
                    OrderStatus.COMPLETED.value,
                    producer_id,
                ),
                as_dict=True,
            )
        if not row:
            return 0, 0, 0, Decimal(0)
        return row["total"], row["pending"], row["completed"], Decimal(row["revenue"])

    # -- progress -----------------------------------------------------------

    @staticmethod
    def _row_to_progress(row: dict) -> ProgressState:
        return ProgressState(
            order_id=row["order_id"],
            milestones=row.get("milestones") or {},
            version=row["version"],
            updated_at=row["updated_at"],
        )

    def find_progress(self, order_id: int) -> ProgressState | None:
        with store_errors():
            row = self._db.fetch_one(
                "SELECT * FROM order_progress WHERE order_id = %s",
                (order_id,),
                as_dict=True,
            )
        return self._row_to_progress(row) if row else None

    def upsert_milestone(
        self,
        order_id: int,
        name: str,
        completed: bool,
        *,
        required_status: OrderStatus,
        now: datetime,
    ) -> ProgressState | None:
        """Gated upsert.

        ``FOR SHARE`` on the order row blocks a concurrent status CAS
        until this transaction commits, so the milestone can never land
        on an order that has already left *required_status*.
        """
        patch = Jsonb({name: completed})
        with store_errors(), UnitOfWork(self._db) as uow:
            gate = uow.fetch_one(
                "SELECT status FROM orders WHERE id = %s FOR SHARE",
                (order_id,),
            )
            if gate is None or gate["status"] != required_status.value:
                return None
            row = uow.fetch_one(
                "INSERT INTO order_progress (order_id, milestones, version, updated_at) "
                "VALUES (%s, %s, 1, %s) "
                "ON CONFLICT (order_id) DO UPDATE SET "
                "  milestones = order_progress.milestones || EXCLUDED.milestones, "
                "  version = order_progress.version + 1, "
                "  updated_at = EXCLUDED.updated_at "
                "RETURNING *",
                (order_id, patch, now),
            )
        return self._row_to_progress(row)

    # -- health -------------------------------------------------------------

    def ping(self) -> bool:
        return self._db.health_check()
