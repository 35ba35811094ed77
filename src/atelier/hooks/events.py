"""Canonical notification event definitions.

Single source of truth for the lifecycle event names, the
:class:`~atelier.hooks.base.Hook` method each one maps to, and the
immutable event records the engine and tracker emit.

Depends only on :mod:`atelier.core.types`, so it can be imported from
anywhere without circular import risk.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from atelier.core.types import EventKind

if TYPE_CHECKING:
    from datetime import datetime

    from atelier.core.types import OrderStatus, TransitionAction

EVENT_METHOD_MAP: dict[str, str] = {
    EventKind.ORDER_CREATED.value: "on_order_created",
    EventKind.ORDER_TRANSITIONED.value: "on_order_transition",
    EventKind.PROGRESS_UPDATED.value: "on_progress_updated",
}

KNOWN_EVENTS: frozenset[str] = frozenset(EVENT_METHOD_MAP.keys())


@dataclass(frozen=True)
class OrderCreatedEvent:
    event_name: ClassVar[str] = EventKind.ORDER_CREATED.value

    order_id: int
    order_number: str
    customer_id: str
    producer_id: str
    acceptance_deadline: datetime
    timestamp: datetime

    def to_context(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "producer_id": self.producer_id,
            "acceptance_deadline": self.acceptance_deadline.isoformat(),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class OrderTransitionEvent:
    event_name: ClassVar[str] = EventKind.ORDER_TRANSITIONED.value

    order_id: int
    previous_status: OrderStatus
    new_status: OrderStatus
    timestamp: datetime
    kind: TransitionAction

    def to_context(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class MilestoneEvent:
    event_name: ClassVar[str] = EventKind.PROGRESS_UPDATED.value

    order_id: int
    milestone: str
    completed: bool
    timestamp: datetime

    def to_context(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "milestone": self.milestone,
            "completed": self.completed,
            "timestamp": self.timestamp.isoformat(),
        }


NotificationEvent = OrderCreatedEvent | OrderTransitionEvent | MilestoneEvent
