"""Enumerated types for the ATELIER persistence layer.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that psycopg serialises as TEXT and JSON round-trips naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.REJECTED, OrderStatus.COMPLETED)


class TransitionAction(StrEnum):
    ACCEPT = "accept"
    REJECT = "reject"
    COMPLETE = "complete"
    EXPIRE = "expire"


class RejectionReason(StrEnum):
    PRODUCER = "producer"
    DEADLINE = "deadline"


# ---------------------------------------------------------------------------
# Notification events
# ---------------------------------------------------------------------------


class EventKind(StrEnum):
    ORDER_CREATED = "order.created"
    ORDER_TRANSITIONED = "order.transitioned"
    PROGRESS_UPDATED = "progress.updated"
