"""Hook registry: loads notification hooks and fans events out to them.

Hooks come from two places: ``hooks.registered`` entries in the config
file (imported by dotted class path at startup) and programmatic
:meth:`HookRegistry.register` calls.  :meth:`HookRegistry.dispatch`
hands each subscribed hook its own copy of the event context and runs
it on a :class:`~concurrent.futures.ThreadPoolExecutor`, so the caller
returns as soon as the work is queued.  Hook failures are retried with
backoff, then logged (and optionally appended to a dead-letter file);
they never reach the caller.

Usage::

    registry = HookRegistry(settings.hooks)
    registry.dispatch("order.transitioned", {"order_id": 7, ...})
"""

from __future__ import annotations

import copy
import importlib
import json
import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from atelier.hooks.base import Hook
from atelier.hooks.events import EVENT_METHOD_MAP, KNOWN_EVENTS

if TYPE_CHECKING:
    from collections.abc import Iterable

    from atelier.config.settings import HookEntrySettings, HookSettings

log = logging.getLogger(__name__)

_CLASS_PATH_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$")


@dataclass(frozen=True)
class _LoadedHook:
    instance: Hook
    name: str
    events: frozenset[str]
    timeout_seconds: int


@dataclass(frozen=True)
class HookOutcome:
    """Result of one hook invocation, reported to the done-callback."""

    hook_name: str
    event: str
    ok: bool
    duration_ms: float
    attempts: int
    error: str | None = None


def _validate_events(name: str, events: Iterable[str]) -> frozenset[str]:
    requested = frozenset(events)
    if not requested:
        return KNOWN_EVENTS
    unknown = requested - KNOWN_EVENTS
    if unknown:
        msg = (
            f"Hook '{name}' subscribes to unknown events: "
            f"{sorted(unknown)}. Known events: {sorted(KNOWN_EVENTS)}"
        )
        raise ValueError(msg)
    return requested


class HookRegistry:
    """Registry of notification hooks with fire-and-forget dispatch.

    Parameters
    ----------
    settings:
        The ``hooks`` section from :class:`AtelierSettings`.

    """

    def __init__(self, settings: HookSettings) -> None:
        self._settings = settings
        self._hooks: list[_LoadedHook] = []
        self._executor: ThreadPoolExecutor | None = None
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()
        self._dispatched = 0
        self._failed = 0
        for entry in settings.registered:
            if not entry.enabled:
                log.debug("Hook '%s' is disabled, skipping", entry.class_path)
                continue
            try:
                self._load_entry(entry)
            except Exception:
                log.critical(
                    "Failed to load hook '%s' -- refusing to start",
                    entry.class_path,
                    exc_info=True,
                )
                raise

    # -- counters ----------------------------------------------------------

    @property
    def dispatch_count(self) -> int:
        """Hook invocations finished, successful or not."""
        with self._lock:
            return self._dispatched

    @property
    def error_count(self) -> int:
        """Hook invocations that failed after all retries."""
        with self._lock:
            return self._failed

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    @property
    def hook_names(self) -> list[str]:
        return [h.name for h in self._hooks]

    # -- loading -----------------------------------------------------------

    def _load_entry(self, entry: HookEntrySettings) -> None:
        """Import, validate, and instantiate one configured hook."""
        if not _CLASS_PATH_RE.match(entry.class_path):
            msg = (
                f"Invalid hook class path '{entry.class_path}': must match "
                "'package.module.ClassName'"
            )
            raise ValueError(msg)

        module_path, _, cls_name = entry.class_path.rpartition(".")
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
        if not (isinstance(cls, type) and issubclass(cls, Hook)):
            msg = f"Hook '{entry.class_path}' must be a subclass of atelier.hooks.Hook"
            raise TypeError(msg)

        cls.validate_config(entry.config)
        self._add(
            cls(config=entry.config),
            name=entry.class_path,
            events=entry.events,
            timeout_seconds=entry.timeout_seconds,
        )

    def register(
        self,
        hook: Hook,
        events: Iterable[str] = (),
        *,
        name: str | None = None,
    ) -> None:
        """Add an already-constructed hook (all events when *events* is empty)."""
        if not isinstance(hook, Hook):
            msg = f"{hook!r} is not an atelier.hooks.Hook"
            raise TypeError(msg)
        self._add(hook, name=name or type(hook).__qualname__, events=events)

    def _add(
        self,
        hook: Hook,
        *,
        name: str,
        events: Iterable[str],
        timeout_seconds: int | None = None,
    ) -> None:
        subscribed = _validate_events(name, events)
        self._hooks.append(
            _LoadedHook(
                instance=hook,
                name=name,
                events=subscribed,
                timeout_seconds=timeout_seconds or self._settings.timeout_seconds,
            ),
        )
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._settings.max_workers,
                thread_name_prefix="atelier-hook",
            )
        log.info(
            "Loaded hook: %s (events=%s)",
            name,
            "all" if subscribed == KNOWN_EVENTS else sorted(subscribed),
        )

    # -- dispatch ----------------------------------------------------------

    def dispatch(self, event: str, context: dict) -> None:
        """Queue *event* for every subscribed hook and return immediately.

        Raises :class:`ValueError` only for an unknown event name, which
        is a programming error rather than a delivery failure.
        """
        method_name = EVENT_METHOD_MAP.get(event)
        if method_name is None:
            msg = f"Unknown hook event '{event}'. Known events: {sorted(KNOWN_EVENTS)}"
            raise ValueError(msg)

        if self._shutdown_event.is_set() or self._executor is None:
            return

        base_context = copy.deepcopy(context)
        for loaded in self._hooks:
            if event not in loaded.events:
                continue
            try:
                future: Future = self._executor.submit(
                    self._invoke,
                    loaded,
                    method_name,
                    dict(base_context),
                    event,
                )
            except RuntimeError:
                log.warning(
                    "Executor shut down, cannot dispatch '%s' to '%s'",
                    event,
                    loaded.name,
                )
                continue
            future.add_done_callback(lambda f, _l=loaded: self._on_done(f, _l))

    def _invoke(
        self,
        loaded: _LoadedHook,
        method_name: str,
        context: dict,
        event: str,
    ) -> HookOutcome:
        attempts = self._settings.max_retries + 1
        start = time.monotonic()
        error: str | None = None
        for attempt in range(1, attempts + 1):
            try:
                getattr(loaded.instance, method_name)(context)
            except Exception as exc:  # noqa: BLE001
                error = f"{type(exc).__name__}: {exc}"
                if attempt < attempts:
                    time.sleep(self._settings.retry_backoff_seconds * (2 ** (attempt - 1)))
                continue
            return HookOutcome(
                hook_name=loaded.name,
                event=event,
                ok=True,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                attempts=attempt,
            )
        return HookOutcome(
            hook_name=loaded.name,
            event=event,
            ok=False,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            attempts=attempts,
            error=error,
        )

    def _on_done(self, future: Future, loaded: _LoadedHook) -> None:
        try:
            outcome: HookOutcome = future.result(timeout=0)
        except Exception:
            with self._lock:
                self._dispatched += 1
                self._failed += 1
            log.exception("Hook future failed unexpectedly", extra={"hook_name": loaded.name})
            return

        with self._lock:
            self._dispatched += 1
            if not outcome.ok:
                self._failed += 1

        extra = {
            "hook_name": outcome.hook_name,
            "event": outcome.event,
            "outcome": "success" if outcome.ok else "error",
            "duration_ms": outcome.duration_ms,
            "attempts": outcome.attempts,
        }
        if not outcome.ok:
            log.error(
                "Hook '%s' failed for event '%s' after %d attempt(s): %s",
                outcome.hook_name,
                outcome.event,
                outcome.attempts,
                outcome.error,
                extra=extra,
            )
            if self._settings.dead_letter_log:
                self._write_dead_letter(outcome)
        elif outcome.duration_ms > loaded.timeout_seconds * 1000:
            log.warning(
                "Hook '%s' exceeded timeout for event '%s' (%.1fms)",
                outcome.hook_name,
                outcome.event,
                outcome.duration_ms,
                extra=extra,
            )
        else:
            log.debug(
                "Hook '%s' completed event '%s' in %.1fms",
                outcome.hook_name,
                outcome.event,
                outcome.duration_ms,
                extra=extra,
            )

    def _write_dead_letter(self, outcome: HookOutcome) -> None:
        """Append a failed delivery to the dead-letter file as one JSON line."""
        entry = json.dumps(
            {
                "timestamp": time.time(),
                "hook_name": outcome.hook_name,
                "event": outcome.event,
                "error": outcome.error,
                "attempts": outcome.attempts,
            }
        )
        # Pool threads share one file; keep each line whole.
        path = self._settings.dead_letter_log
        try:
            with self._lock, open(path, "a", encoding="utf-8") as f:  # noqa: PTH123
                f.write(entry + "\n")
        except OSError:
            log.exception("Failed to write dead-letter log entry")

    # -- lifecycle ---------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events and shut the pool down.

        Safe to call more than once; only the first call has effect.
        """
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            log.info(
                "Hook executor shut down (dispatched=%d, errors=%d)",
                self.dispatch_count,
                self.error_count,
            )
