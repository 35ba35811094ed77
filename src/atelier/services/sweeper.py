"""Acceptance-deadline sweeper.

:class:`DeadlineSweeper` runs one pass: it queries the store afresh for
PENDING orders whose acceptance deadline has passed and expires each one
through the lifecycle service.  Losing a race to an interactive caller
is a normal outcome and is skipped without retry; the next pass
recomputes everything, so a pass can be repeated or run concurrently
without expiring anything twice.

:class:`SweepWorker` is the daemon thread that runs passes on an
interval.  External schedulers can call the ``POST /sweep`` endpoint or
``atelier sweep`` instead.

Usage::

    worker = SweepWorker(DeadlineSweeper(store, lifecycle, clock), settings)
    worker.start()
    ...
    worker.stop()
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from atelier.app.errors import (
    ConcurrentModification,
    DeadlineExpired,
    InvalidTransition,
    NotFound,
)
from atelier.core.types import TransitionAction
from atelier.db.errors import store_errors

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pypgkit import Database

    from atelier.config.settings import SweeperSettings
    from atelier.core.clock import Clock
    from atelier.repositories.base import OrderStore
    from atelier.services.lifecycle import OrderLifecycleService

log = logging.getLogger(__name__)

# Expected outcomes when an interactive caller got there first.
_RACE_LOSSES = (ConcurrentModification, InvalidTransition, DeadlineExpired, NotFound)


@dataclass(frozen=True)
class SweepResult:
    orders_expired: int
    examined: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "orders_expired": self.orders_expired,
            "examined": self.examined,
            "skipped": self.skipped,
        }


class DeadlineSweeper:
    """One-shot expiry of orders whose acceptance window lapsed."""

    def __init__(
        self,
        store: OrderStore,
        lifecycle: OrderLifecycleService,
        clock: Clock,
        batch_size: int | None = None,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._clock = clock
        self._batch_size = batch_size

    def run_sweep(self) -> SweepResult:
        """Expire every overdue PENDING order found in this pass.

        :class:`~atelier.app.errors.StoreUnavailable` from the query
        propagates; race losses on individual orders are counted as
        skipped.
        """
        overdue = self._store.find_expired_pending(self._clock.now(), self._batch_size)
        expired = 0
        skipped = 0
        for order in overdue:
            try:
                self._lifecycle.transition(order.id, order.version, TransitionAction.EXPIRE)
            except _RACE_LOSSES as exc:
                skipped += 1
                log.debug(
                    "Sweep skipped order %s: %s",
                    order.id,
                    type(exc).__name__,
                )
                continue
            expired += 1

        result = SweepResult(orders_expired=expired, examined=len(overdue), skipped=skipped)
        if overdue:
            log.info(
                "Deadline sweep expired %d of %d overdue orders (%d skipped)",
                expired,
                len(overdue),
                skipped,
                extra={"event": "deadline_sweep", **result.to_dict()},
            )
        return result


class SweepWorker:
    """Daemon thread that runs :class:`DeadlineSweeper` periodically.

    When a database is provided, a transaction-scoped
    ``pg_try_advisory_xact_lock`` is held for the duration of each pass
    so only one instance in the cluster sweeps at a time.  The sweep
    itself is safe to run concurrently; the lock only avoids wasted work.
    """

    _ADVISORY_LOCK_ID = 481_517

    def __init__(
        self,
        sweeper: DeadlineSweeper,
        settings: SweeperSettings,
        db: Database | None = None,
    ) -> None:
        self._sweeper = sweeper
        self._settings = settings
        self._db = db
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._consecutive_failures = 0
        self.last_result: SweepResult | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background worker thread."""
        if not self._settings.enabled:
            log.info("Deadline sweeper disabled by configuration")
            return
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="deadline-sweeper",
            daemon=True,
        )
        self._thread.start()
        log.info("Deadline sweeper started (interval=%ds)", self._settings.interval_seconds)

    def stop(self) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._settings.interval_seconds + 5)
            self._thread = None
            log.info("Deadline sweeper stopped")

    @contextlib.contextmanager
    def _leadership(self) -> Iterator[bool]:
        if self._db is None:
            yield True
            return
        with store_errors(), self._db.transaction() as conn:
            row = conn.execute(
                "SELECT pg_try_advisory_xact_lock(%s)",
                (self._ADVISORY_LOCK_ID,),
            ).fetchone()
            yield bool(row and row[0])

    def run_once(self) -> SweepResult | None:
        """Run a single pass if this instance holds the sweep lock."""
        with self._leadership() as leader:
            if not leader:
                log.debug("Another instance holds the sweep lock, skipping")
                return None
            self.last_result = self._sweeper.run_sweep()
            return self.last_result

    def _run(self) -> None:
        """Main worker loop."""
        interval = self._settings.interval_seconds
        while not self._stop_event.is_set():
            try:
                self.run_once()
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                log.exception(
                    "Deadline sweep failed (consecutive: %d)",
                    self._consecutive_failures,
                )
                # Exponential backoff, capped
                backoff = min(
                    interval * (2**self._consecutive_failures),
                    interval * self._settings.max_backoff_multiplier,
                )
                self._stop_event.wait(timeout=backoff)
                continue
            self._stop_event.wait(timeout=interval)
