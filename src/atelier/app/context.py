"""Dependency injection container for ATELIER.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.

Usage::

    from atelier.app.context import get_container

    c = get_container()
    order = c.lifecycle.get_order(order_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app

if TYPE_CHECKING:
    from pypgkit import Database

    from atelier.config.settings import AtelierSettings
    from atelier.core.clock import Clock
    from atelier.hooks.emitter import NotificationEmitter
    from atelier.hooks.registry import HookRegistry
    from atelier.repositories.base import OrderStore
    from atelier.services.lifecycle import IdentityResolver, OrderLifecycleService
    from atelier.services.progress import ProgressTracker
    from atelier.services.sweeper import DeadlineSweeper, SweepWorker


class Container:
    """Application-wide dependency container.

    Wires one store, one clock and one emitter into the lifecycle
    service, the progress tracker and the deadline sweeper so that
    request handlers, the sweep worker and the CLI share them.
    """

    def __init__(  # noqa: PLR0913
        self,
        settings: AtelierSettings,
        store: OrderStore,
        clock: Clock,
        *,
        db: Database | None = None,
        hook_registry: HookRegistry | None = None,
        identity_resolver: IdentityResolver | None = None,
    ) -> None:
        from atelier.hooks.emitter import NotificationEmitter  # noqa: PLC0415
        from atelier.hooks.registry import HookRegistry  # noqa: PLC0415
        from atelier.services.lifecycle import OrderLifecycleService  # noqa: PLC0415
        from atelier.services.progress import ProgressTracker  # noqa: PLC0415
        from atelier.services.sweeper import DeadlineSweeper, SweepWorker  # noqa: PLC0415

        self.settings: AtelierSettings = settings
        self.store: OrderStore = store
        self.clock: Clock = clock
        self.db: Database | None = db

        # Notifications
        self.hook_registry: HookRegistry = hook_registry or HookRegistry(settings.hooks)
        self.emitter: NotificationEmitter = NotificationEmitter(self.hook_registry)

        # Services
        self.lifecycle: OrderLifecycleService = OrderLifecycleService(
            store,
            clock,
            settings.lifecycle,
            emitter=self.emitter,
            identity_resolver=identity_resolver,
        )
        self.progress: ProgressTracker = ProgressTracker(
            store,
            self.lifecycle,
            clock,
            settings.progress,
            emitter=self.emitter,
        )
        self.sweeper: DeadlineSweeper = DeadlineSweeper(
            store,
            self.lifecycle,
            clock,
            batch_size=settings.sweeper.batch_size,
        )
        self.sweep_worker: SweepWorker = SweepWorker(self.sweeper, settings.sweeper, db=db)

    def shutdown(self) -> None:
        """Stop background work; safe to call more than once."""
        self.sweep_worker.stop()
        self.hook_registry.shutdown()


def get_container() -> Container:
    """Return the :class:`Container` for the current Flask app.

    Raises :class:`RuntimeError` outside an application context or when
    the app was created without one.
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = "Dependency container not initialised"
        raise RuntimeError(msg)
    return container
