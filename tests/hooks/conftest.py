"""Hook-specific fixtures for testing."""

from __future__ import annotations

import threading
import types
from typing import Any
from unittest.mock import patch

import pytest

from atelier.config.settings import HookEntrySettings, HookSettings
from atelier.hooks.base import Hook

# ---------------------------------------------------------------------------
# Concrete Hook subclasses for testing
# ---------------------------------------------------------------------------


class DummyHook(Hook):
    """Records every call in ``self.calls``."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self.calls: list[tuple[str, dict]] = []
        self.called = threading.Event()

    def _record(self, method: str, ctx: dict) -> None:
        self.calls.append((method, ctx))
        self.called.set()

    def on_order_created(self, ctx: dict) -> None:
        self._record("on_order_created", ctx)

    def on_order_transition(self, ctx: dict) -> None:
        self._record("on_order_transition", ctx)

    def on_progress_updated(self, ctx: dict) -> None:
        self._record("on_progress_updated", ctx)


class FailingHook(Hook):
    """Raises RuntimeError on every event method."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self.attempts = 0

    def _boom(self, ctx: dict) -> None:
        self.attempts += 1
        raise RuntimeError("boom")

    on_order_created = _boom
    on_order_transition = _boom
    on_progress_updated = _boom


class FlakyHook(Hook):
    """Fails ``fail_times`` times, then succeeds."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self.remaining = self.config.get("fail_times", 1)
        self.attempts = 0

    def on_order_transition(self, ctx: dict) -> None:
        self.attempts += 1
        if self.remaining > 0:
            self.remaining -= 1
            raise RuntimeError("transient")


class ValidatingHook(Hook):
    """``validate_config`` requires ``required_key`` in config."""

    @classmethod
    def validate_config(cls, config: dict) -> None:
        if "required_key" not in config:
            raise ValueError("missing required_key")


class ContextMutatingHook(Hook):
    """Mutates the received context dict (for isolation tests)."""

    def on_order_transition(self, ctx: dict) -> None:
        ctx["mutated_by"] = "ContextMutatingHook"
        ctx["nested"]["injected"] = True


class NotAHook:
    """Not a Hook subclass: used for TypeError tests."""


# ---------------------------------------------------------------------------
# Helper builders
# ---------------------------------------------------------------------------


def make_hook_entry(
    class_path: str = "fake_hooks.DummyHook",
    enabled: bool = True,
    events: tuple[str, ...] = (),
    timeout_seconds: int | None = None,
    config: dict[str, Any] | None = None,
) -> HookEntrySettings:
    return HookEntrySettings(
        class_path=class_path,
        enabled=enabled,
        events=events,
        timeout_seconds=timeout_seconds,
        config=config or {},
    )


def make_hook_settings(
    timeout_seconds: int = 30,
    max_workers: int = 2,
    max_retries: int = 0,
    retry_backoff_seconds: float = 0.0,
    dead_letter_log: str | None = None,
    registered: tuple[HookEntrySettings, ...] = (),
) -> HookSettings:
    return HookSettings(
        timeout_seconds=timeout_seconds,
        max_workers=max_workers,
        max_retries=max_retries,
        retry_backoff_seconds=retry_backoff_seconds,
        dead_letter_log=dead_letter_log,
        registered=registered,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def hook_classes() -> types.SimpleNamespace:
    return types.SimpleNamespace(
        DummyHook=DummyHook,
        FailingHook=FailingHook,
        FlakyHook=FlakyHook,
        ValidatingHook=ValidatingHook,
        ContextMutatingHook=ContextMutatingHook,
        NotAHook=NotAHook,
    )


@pytest.fixture()
def hook_entry():
    return make_hook_entry


@pytest.fixture()
def hook_settings():
    return make_hook_settings


@pytest.fixture()
def fake_module() -> types.ModuleType:
    """A module object exposing every test hook class."""
    mod = types.ModuleType("fake_hooks")
    mod.DummyHook = DummyHook
    mod.FailingHook = FailingHook
    mod.FlakyHook = FlakyHook
    mod.ValidatingHook = ValidatingHook
    mod.ContextMutatingHook = ContextMutatingHook
    mod.NotAHook = NotAHook
    return mod


@pytest.fixture()
def registry_with_hooks(fake_module):
    """Patch ``importlib.import_module`` and yield a factory function.

    Usage in tests::

        def test_x(registry_with_hooks, hook_entry):
            registry = registry_with_hooks(entries=[hook_entry()])
    """
    from atelier.hooks.registry import HookRegistry

    created: list[HookRegistry] = []

    def _factory(entries=None, **settings_kwargs) -> HookRegistry:
        if entries is None:
            entries = [make_hook_entry()]
        settings = make_hook_settings(registered=tuple(entries), **settings_kwargs)
        with patch("atelier.hooks.registry.importlib.import_module", return_value=fake_module):
            registry = HookRegistry(settings)
        created.append(registry)
        return registry

    yield _factory
    for registry in created:
        registry.shutdown(wait=True)
