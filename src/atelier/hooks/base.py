"""Abstract base class for ATELIER notification hooks.

A hook is the delivery end of the notification emitter: chat relays,
webhooks, audit sinks.  Subclasses override the event methods they
care about; the rest are no-ops.

Usage::

    from atelier.hooks import Hook

    class ChatRelay(Hook):
        def on_order_transition(self, ctx: dict) -> None:
            post_to_chat(ctx["order_id"], ctx["new_status"])
"""

from __future__ import annotations

import abc


class Hook(abc.ABC):
    """Base class for all ATELIER notification hooks.

    Parameters
    ----------
    config:
        Optional passthrough configuration from the hook entry's
        ``config`` dict in the ATELIER config file.

    """

    def __init__(self, config: dict | None = None) -> None:
        self.config = config or {}

    @classmethod
    def validate_config(cls, config: dict) -> None:
        """Reject unusable configuration before instantiation.

        Raise :class:`ValueError` if *config* is not acceptable.  The
        default accepts anything.
        """

    def on_order_created(self, ctx: dict) -> None:
        """Called after an order is placed.

        Context keys: ``order_id``, ``order_number``, ``customer_id``,
        ``producer_id``, ``acceptance_deadline``, ``timestamp``.
        """

    def on_order_transition(self, ctx: dict) -> None:
        """Called after any committed status transition.

        Context keys: ``order_id``, ``previous_status``,
        ``new_status``, ``timestamp``, ``kind`` (the action).
        """

    def on_progress_updated(self, ctx: dict) -> None:
        """Called after a milestone flag is written.

        Context keys: ``order_id``, ``milestone``, ``completed``,
        ``timestamp``.
        """
