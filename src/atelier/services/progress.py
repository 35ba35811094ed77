"""Progress milestone tracker.

Milestones are an open set of lower-case names, each mapped to a
completion flag.  Writes are accepted only while the owning order is
ACCEPTED; the status check and the write happen in one atomic store
operation, so a milestone can never land on an order that has already
completed or been rejected.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from atelier.app.errors import InvalidInput, InvalidState
from atelier.core.types import OrderStatus
from atelier.hooks.events import MilestoneEvent
from atelier.models.progress import ProgressState

if TYPE_CHECKING:
    from atelier.config.settings import ProgressSettings
    from atelier.core.clock import Clock
    from atelier.hooks.emitter import NotificationEmitter
    from atelier.repositories.base import OrderStore
    from atelier.services.lifecycle import OrderLifecycleService

log = logging.getLogger(__name__)

# Display order for UIs; not enforced.
SUGGESTED_MILESTONES: tuple[str, ...] = (
    "measurements_confirmed",
    "cutting_started",
    "sewing_progress",
    "final_checks",
    "ready_for_delivery",
)

_MILESTONE_RE = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")


class ProgressTracker:
    """Record and read milestone flags for accepted orders."""

    def __init__(
        self,
        store: OrderStore,
        lifecycle: OrderLifecycleService,
        clock: Clock,
        settings: ProgressSettings,
        emitter: NotificationEmitter | None = None,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._clock = clock
        self._settings = settings
        self._emitter = emitter

    def _validate_name(self, name: object) -> str:
        if not isinstance(name, str) or not name:
            msg = "Milestone name must be a non-empty string"
            raise InvalidInput(msg)
        if len(name) > self._settings.max_name_length:
            msg = (
                f"Milestone name exceeds {self._settings.max_name_length} "
                f"characters ({len(name)})"
            )
            raise InvalidInput(msg)
        if not _MILESTONE_RE.match(name):
            msg = (
                f"Invalid milestone name {name!r}: use lower-case letters, "
                "digits, '_' or '-'"
            )
            raise InvalidInput(msg)
        return name

    def set_milestone(self, order_id: int, name: str, completed: bool) -> ProgressState:
        """Set milestone *name* to *completed* on an ACCEPTED order.

        Raises
        ------
        InvalidInput
            Bad milestone name, or *completed* is not a bool.
        NotFound
            Unknown order.
        InvalidState
            The order is not ACCEPTED, including when it leaves ACCEPTED
            between the read and the write.

        """
        name = self._validate_name(name)
        if not isinstance(completed, bool):
            msg = "completed must be a boolean"
            raise InvalidInput(msg)

        order = self._lifecycle.get_order(order_id)
        if order.status != OrderStatus.ACCEPTED:
            msg = (
                f"Order {order.order_number} is {order.status.value}; "
                "milestones can only be updated while it is accepted"
            )
            raise InvalidState(msg)

        now = self._clock.now()
        state = self._store.upsert_milestone(
            order.id,
            name,
            completed,
            required_status=OrderStatus.ACCEPTED,
            now=now,
        )
        if state is None:
            msg = f"Order {order.order_number} is no longer accepted"
            raise InvalidState(msg)

        log.info(
            "Order %s milestone %s -> %s",
            order.id,
            name,
            completed,
            extra={"order_id": order.id, "milestone": name},
        )
        if self._emitter is not None:
            self._emitter.emit(
                MilestoneEvent(
                    order_id=order.id,
                    milestone=name,
                    completed=completed,
                    timestamp=now,
                ),
            )
        return state

    def get_progress(self, order_id: int) -> ProgressState:
        """Current milestones; an empty state when none are recorded yet."""
        order = self._lifecycle.get_order(order_id)
        state = self._store.find_progress(order.id)
        return state if state is not None else ProgressState(order_id=order.id)
