"""Order lifecycle state machine.

Defines the valid status transitions for orders and the mapping from
lifecycle actions to target statuses.  All transitions are enforced via
:func:`assert_transition` / :func:`resolve_action`.

Usage::

    from atelier.core.state import resolve_action
    from atelier.core.types import OrderStatus, TransitionAction

    target = resolve_action(OrderStatus.PENDING, TransitionAction.ACCEPT)
"""

from __future__ import annotations

import logging

from atelier.app.errors import InvalidTransition
from atelier.core.types import OrderStatus, TransitionAction

log = logging.getLogger(__name__)
audit_log = logging.getLogger("atelier.audit")

# ---------------------------------------------------------------------------
# Order: pending → accepted/rejected, accepted → completed.
#        rejected & completed are terminal.
# ---------------------------------------------------------------------------

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.COMPLETED: frozenset(),
}

# ---------------------------------------------------------------------------
# Actions: (required source status, target status)
# ---------------------------------------------------------------------------

ACTION_TABLE: dict[TransitionAction, tuple[OrderStatus, OrderStatus]] = {
    TransitionAction.ACCEPT: (OrderStatus.PENDING, OrderStatus.ACCEPTED),
    TransitionAction.REJECT: (OrderStatus.PENDING, OrderStatus.REJECTED),
    TransitionAction.EXPIRE: (OrderStatus.PENDING, OrderStatus.REJECTED),
    TransitionAction.COMPLETE: (OrderStatus.ACCEPTED, OrderStatus.COMPLETED),
}

# Actions bound by the acceptance window.
DEADLINE_BOUND_ACTIONS: frozenset[TransitionAction] = frozenset(
    {TransitionAction.ACCEPT, TransitionAction.REJECT},
)


def assert_transition(
    current: OrderStatus,
    target: OrderStatus,
    table: dict = ORDER_TRANSITIONS,
) -> None:
    """Raise :class:`InvalidTransition` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current status of the order.
    target:
        The desired new status.
    table:
        Transition table, :data:`ORDER_TRANSITIONS` by default.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise InvalidTransition(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise InvalidTransition(msg)


def resolve_action(current: OrderStatus, action: TransitionAction) -> OrderStatus:
    """Return the status *action* leads to from *current*.

    Raises :class:`InvalidTransition` when *action* is not legal from
    *current* (including every action from a terminal status).
    """
    try:
        action = TransitionAction(action)
        source, target = ACTION_TABLE[action]
    except (KeyError, ValueError) as err:
        msg = f"Unknown action {action!r}"
        raise InvalidTransition(msg) from err
    if current != source:
        msg = (
            f"Cannot {action.value} an order that is {current.value!r}; "
            f"requires {source.value!r}"
        )
        raise InvalidTransition(msg)
    assert_transition(current, target)
    return target


def log_transition(
    resource_id,
    from_status,
    to_status,
    *,
    action: TransitionAction | None = None,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for an order state transition."""
    extra = {
        "event": "state_transition",
        "resource_type": "order",
        "resource_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    if action is not None:
        extra["action"] = action.value
    if reason:
        extra["reason"] = reason
    log.info(
        "order %s: %s -> %s%s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
    audit_log.info("order_transition", extra=extra)
