"""Notification emitter used by the lifecycle engine and tracker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atelier.hooks.events import NotificationEvent
    from atelier.hooks.registry import HookRegistry

log = logging.getLogger(__name__)


class NotificationEmitter:
    """Turns event records into hook dispatches.

    :meth:`emit` is called after a write has committed, so it must
    never fail the caller: anything the registry raises is logged and
    dropped.  With no registry every event is simply logged at debug.
    """

    def __init__(self, registry: HookRegistry | None = None) -> None:
        self._registry = registry

    def emit(self, event: NotificationEvent) -> None:
        context = event.to_context()
        log.debug(
            "Emitting %s for order %s",
            event.event_name,
            context.get("order_id"),
            extra={"event": event.event_name, "order_id": context.get("order_id")},
        )
        if self._registry is None:
            return
        try:
            self._registry.dispatch(event.event_name, context)
        except Exception:
            log.exception("Failed to dispatch %s event", event.event_name)
