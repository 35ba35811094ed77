"""Notification hooks subsystem for ATELIER.

Public API::

    from atelier.hooks import Hook, HookRegistry, NotificationEmitter

    class ChatRelay(Hook):
        def on_order_transition(self, ctx: dict) -> None:
            ...
"""

from atelier.hooks.base import Hook
from atelier.hooks.emitter import NotificationEmitter
from atelier.hooks.events import (
    KNOWN_EVENTS,
    MilestoneEvent,
    OrderCreatedEvent,
    OrderTransitionEvent,
)
from atelier.hooks.registry import HookRegistry

__all__ = [
    "KNOWN_EVENTS",
    "Hook",
    "HookRegistry",
    "MilestoneEvent",
    "NotificationEmitter",
    "OrderCreatedEvent",
    "OrderTransitionEvent",
]
