"""Tests for atelier.hooks.registry: HookRegistry."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from atelier.hooks.base import Hook
from atelier.hooks.events import KNOWN_EVENTS
from atelier.hooks.registry import HookRegistry

_CTX = {"order_id": 7, "previous_status": "pending", "new_status": "accepted"}

# =========================================================================
# Loading
# =========================================================================


class TestLoading:
    def test_empty_registered_list(self, hook_settings):
        registry = HookRegistry(hook_settings())
        assert registry._hooks == []
        assert registry._executor is None
        registry.shutdown()

    def test_disabled_hook_skipped(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(entries=[hook_entry(enabled=False)])
        assert registry._hooks == []
        assert registry._executor is None

    def test_valid_hook_loaded(self, registry_with_hooks):
        registry = registry_with_hooks()
        assert len(registry._hooks) == 1
        assert isinstance(registry._hooks[0].instance, Hook)
        assert registry._executor is not None
        assert registry.hook_names == ["fake_hooks.DummyHook"]

    def test_executor_max_workers(self, registry_with_hooks):
        registry = registry_with_hooks(max_workers=8)
        assert registry._executor._max_workers == 8

    @pytest.mark.parametrize("path", ["no-dots-here", ".bad.Path", "NoModule"])
    def test_invalid_class_path(self, fake_module, hook_entry, hook_settings, path):
        settings = hook_settings(registered=(hook_entry(class_path=path),))
        with patch("atelier.hooks.registry.importlib.import_module", return_value=fake_module):
            with pytest.raises(ValueError, match="Invalid hook class path"):
                HookRegistry(settings)

    def test_module_not_found_propagates(self, hook_entry, hook_settings):
        settings = hook_settings(registered=(hook_entry(class_path="nonexistent.module.Hook"),))
        with pytest.raises(ModuleNotFoundError):
            HookRegistry(settings)

    def test_class_not_hook_subclass(self, fake_module, hook_entry, hook_settings):
        settings = hook_settings(registered=(hook_entry(class_path="fake_hooks.NotAHook"),))
        with patch("atelier.hooks.registry.importlib.import_module", return_value=fake_module):
            with pytest.raises(TypeError, match="must be a subclass"):
                HookRegistry(settings)

    def test_validate_config_called(self, fake_module, hook_entry, hook_settings):
        entry = hook_entry(class_path="fake_hooks.ValidatingHook", config={})
        settings = hook_settings(registered=(entry,))
        with patch("atelier.hooks.registry.importlib.import_module", return_value=fake_module):
            with pytest.raises(ValueError, match="missing required_key"):
                HookRegistry(settings)

    def test_validate_config_passes(self, registry_with_hooks, hook_entry):
        entry = hook_entry(
            class_path="fake_hooks.ValidatingHook",
            config={"required_key": "present"},
        )
        registry = registry_with_hooks(entries=[entry])
        assert registry._hooks[0].instance.config == {"required_key": "present"}

    def test_load_failure_logged_critical(self, fake_module, hook_entry, hook_settings, caplog):
        settings = hook_settings(registered=(hook_entry(class_path="fake_hooks.NotAHook"),))
        with caplog.at_level(logging.CRITICAL, logger="atelier.hooks.registry"):
            with patch(
                "atelier.hooks.registry.importlib.import_module",
                return_value=fake_module,
            ):
                with pytest.raises(TypeError):
                    HookRegistry(settings)
        assert any("refusing to start" in r.getMessage() for r in caplog.records)

    def test_unknown_event(self, fake_module, hook_entry, hook_settings):
        entry = hook_entry(events=("order.created", "bogus.event"))
        settings = hook_settings(registered=(entry,))
        with patch("atelier.hooks.registry.importlib.import_module", return_value=fake_module):
            with pytest.raises(ValueError, match="unknown events"):
                HookRegistry(settings)

    def test_empty_events_subscribes_to_all(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(entries=[hook_entry(events=())])
        assert registry._hooks[0].events == KNOWN_EVENTS

    def test_specific_events_subset(self, registry_with_hooks, hook_entry):
        chosen = ("order.transitioned",)
        registry = registry_with_hooks(entries=[hook_entry(events=chosen)])
        assert registry._hooks[0].events == frozenset(chosen)

    def test_per_hook_timeout_override(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(entries=[hook_entry(timeout_seconds=3)])
        assert registry._hooks[0].timeout_seconds == 3


class TestRegister:
    def test_programmatic_registration(self, hook_settings, hook_classes):
        registry = HookRegistry(hook_settings())
        hook = hook_classes.DummyHook()
        registry.register(hook, events=["order.created"], name="relay")
        try:
            assert registry.hook_names == ["relay"]
            assert registry._executor is not None
        finally:
            registry.shutdown()

    def test_rejects_non_hook(self, hook_settings, hook_classes):
        registry = HookRegistry(hook_settings())
        with pytest.raises(TypeError):
            registry.register(hook_classes.NotAHook())

    def test_rejects_unknown_event(self, hook_settings, hook_classes):
        registry = HookRegistry(hook_settings())
        with pytest.raises(ValueError, match="unknown events"):
            registry.register(hook_classes.DummyHook(), events=["order.deleted"])


# =========================================================================
# Dispatch
# =========================================================================


class TestDispatch:
    def test_unknown_event_raises(self, registry_with_hooks):
        registry = registry_with_hooks()
        with pytest.raises(ValueError, match="Unknown hook event"):
            registry.dispatch("order.deleted", {})

    def test_no_hooks_is_noop(self, hook_settings):
        registry = HookRegistry(hook_settings())
        registry.dispatch("order.created", {"order_id": 1})
        assert registry.dispatch_count == 0

    def test_hook_receives_context(self, registry_with_hooks):
        registry = registry_with_hooks()
        hook = registry._hooks[0].instance
        registry.dispatch("order.transitioned", _CTX)
        registry.shutdown(wait=True)
        assert hook.calls == [("on_order_transition", _CTX)]
        assert registry.dispatch_count == 1
        assert registry.error_count == 0

    def test_unsubscribed_event_skipped(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(entries=[hook_entry(events=("order.created",))])
        hook = registry._hooks[0].instance
        registry.dispatch("order.transitioned", _CTX)
        registry.shutdown(wait=True)
        assert hook.calls == []

    def test_context_isolated_between_hooks_and_caller(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(
            entries=[
                hook_entry(class_path="fake_hooks.ContextMutatingHook"),
                hook_entry(class_path="fake_hooks.DummyHook"),
            ],
            max_workers=1,
        )
        observer = registry._hooks[1].instance
        ctx = {"order_id": 1, "nested": {}}
        registry.dispatch("order.transitioned", ctx)
        registry.shutdown(wait=True)
        assert ctx == {"order_id": 1, "nested": {}}
        seen = observer.calls[0][1]
        assert "mutated_by" not in seen

    def test_failure_counted_not_raised(self, registry_with_hooks, hook_entry, caplog):
        registry = registry_with_hooks(entries=[hook_entry(class_path="fake_hooks.FailingHook")])
        with caplog.at_level(logging.ERROR, logger="atelier.hooks.registry"):
            registry.dispatch("order.created", {"order_id": 1})
            registry.shutdown(wait=True)
        assert registry.dispatch_count == 1
        assert registry.error_count == 1
        assert any("boom" in r.getMessage() for r in caplog.records)

    def test_retries_then_succeeds(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(
            entries=[hook_entry(class_path="fake_hooks.FlakyHook", config={"fail_times": 2})],
            max_retries=2,
        )
        hook = registry._hooks[0].instance
        registry.dispatch("order.transitioned", _CTX)
        registry.shutdown(wait=True)
        assert hook.attempts == 3
        assert registry.error_count == 0

    def test_retry_budget_exhausted(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(
            entries=[hook_entry(class_path="fake_hooks.FailingHook")],
            max_retries=1,
        )
        hook = registry._hooks[0].instance
        registry.dispatch("order.transitioned", _CTX)
        registry.shutdown(wait=True)
        assert hook.attempts == 2
        assert registry.error_count == 1

    def test_retry_backoff_sleeps(self, registry_with_hooks, hook_entry):
        registry = registry_with_hooks(
            entries=[hook_entry(class_path="fake_hooks.FailingHook")],
            max_retries=2,
            retry_backoff_seconds=0.5,
        )
        with patch("atelier.hooks.registry.time.sleep") as sleep:
            registry.dispatch("order.transitioned", _CTX)
            registry.shutdown(wait=True)
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_dead_letter_written(self, registry_with_hooks, hook_entry, tmp_path):
        dead = tmp_path / "dead.jsonl"
        registry = registry_with_hooks(
            entries=[hook_entry(class_path="fake_hooks.FailingHook")],
            dead_letter_log=str(dead),
        )
        registry.dispatch("progress.updated", {"order_id": 3})
        registry.shutdown(wait=True)
        lines = dead.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["hook_name"] == "fake_hooks.FailingHook"
        assert entry["event"] == "progress.updated"
        assert entry["error"] == "RuntimeError: boom"
        assert entry["attempts"] == 1

    def test_dead_letter_write_holds_lock(self, registry_with_hooks, hook_entry, tmp_path):
        registry = registry_with_hooks(
            entries=[hook_entry(class_path="fake_hooks.FailingHook")],
            dead_letter_log=str(tmp_path / "dead.jsonl"),
        )
        held: list[bool] = []
        real_open = open

        def _open(*args, **kwargs):
            held.append(registry._lock.locked())
            return real_open(*args, **kwargs)

        with patch("atelier.hooks.registry.open", _open, create=True):
            registry.dispatch("order.created", {"order_id": 1})
            registry.shutdown(wait=True)
        assert held == [True]

    def test_concurrent_dead_letters_stay_line_delimited(
        self, registry_with_hooks, hook_entry, tmp_path
    ):
        dead = tmp_path / "dead.jsonl"
        registry = registry_with_hooks(
            entries=[
                hook_entry(class_path="fake_hooks.FailingHook"),
                hook_entry(class_path="fake_hooks.FailingHook"),
            ],
            dead_letter_log=str(dead),
            max_workers=8,
        )
        for order_id in range(40):
            registry.dispatch("order.created", {"order_id": order_id})
        registry.shutdown(wait=True)
        lines = dead.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 80
        assert all(json.loads(line)["error"] == "RuntimeError: boom" for line in lines)
        assert registry.error_count == 80

    def test_dispatch_after_shutdown_is_dropped(self, registry_with_hooks):
        registry = registry_with_hooks()
        hook = registry._hooks[0].instance
        registry.shutdown(wait=True)
        registry.dispatch("order.created", {"order_id": 1})
        assert hook.calls == []
        assert registry.is_shutdown is True


class TestShutdown:
    def test_idempotent(self, registry_with_hooks):
        registry = registry_with_hooks()
        registry.shutdown(wait=True)
        registry.shutdown(wait=True)
        assert registry.is_shutdown
