"""Response serialization for orders and progress.

Each function takes a model entity and produces a dictionary suitable
for ``flask.jsonify``.  Prices are rendered as decimal strings so no
precision is lost in transit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from atelier.models.order import Order
    from atelier.models.progress import ProgressState


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_order(order: Order) -> dict[str, Any]:
    result: dict[str, Any] = {
        "id": order.id,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "producer_id": order.producer_id,
        "product_name": order.product_name,
        "description": order.description,
        "price": str(order.price),
        "status": order.status.value,
        "is_accepted": order.is_accepted,
        "acceptance_deadline": _iso(order.acceptance_deadline),
        "accepted_at": _iso(order.accepted_at),
        "completed_at": _iso(order.completed_at),
        "attributes": dict(order.attributes),
        "version": order.version,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }
    if order.payment_reference is not None:
        result["payment_reference"] = order.payment_reference
    if order.rejection_reason is not None:
        result["rejection_reason"] = order.rejection_reason.value
    return result


def serialize_order_page(orders: list[Order], next_cursor: int | None) -> dict[str, Any]:
    return {
        "orders": [serialize_order(o) for o in orders],
        "next_cursor": next_cursor,
    }


def serialize_progress(state: ProgressState, suggested: tuple[str, ...] = ()) -> dict[str, Any]:
    """Serialize milestones; *suggested* names are listed for display only."""
    body = state.to_dict()
    if state.version == 0:
        body["updated_at"] = None
    if suggested:
        body["suggested_milestones"] = list(suggested)
    return body


def serialize_summary(summary: dict[str, Any]) -> dict[str, Any]:
    return {**summary, "total_revenue": str(summary["total_revenue"])}
