"""Root conftest for the ATELIER test suite."""

from __future__ import annotations

import sys
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from atelier.config.settings import build_settings  # noqa: E402
from atelier.repositories.memory import InMemoryOrderStore  # noqa: E402
from atelier.services.lifecycle import OrderLifecycleService  # noqa: E402
from atelier.services.progress import ProgressTracker  # noqa: E402
from atelier.services.sweeper import DeadlineSweeper  # noqa: E402

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now += timedelta(**kwargs)
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value


class RecordingEmitter:
    """Collects emitted events instead of dispatching them."""

    def __init__(self) -> None:
        self.events: list = []

    def emit(self, event) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.event_name for e in self.events]


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def make_clock():
    """Factory for extra independent clocks, e.g. one per simulated host."""
    return ManualClock


@pytest.fixture()
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture()
def settings():
    """Default settings tree with the background sweeper off."""
    return build_settings({"sweeper": {"enabled": False}})


@pytest.fixture()
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture()
def lifecycle(store, clock, settings, emitter) -> OrderLifecycleService:
    return OrderLifecycleService(store, clock, settings.lifecycle, emitter=emitter)


@pytest.fixture()
def tracker(store, lifecycle, clock, settings, emitter) -> ProgressTracker:
    return ProgressTracker(store, lifecycle, clock, settings.progress, emitter=emitter)


@pytest.fixture()
def sweeper(store, lifecycle, clock) -> DeadlineSweeper:
    return DeadlineSweeper(store, lifecycle, clock)


@pytest.fixture()
def make_order(lifecycle):
    """Factory placing a PENDING order with sensible defaults."""

    def _factory(**overrides):
        kwargs = {
            "customer_id": "cust-1",
            "producer_id": "tailor-1",
            "price": "120.00",
            "description": "Linen suit",
            "attributes": {"chest_cm": 102, "inseam_cm": 81},
        }
        kwargs.update(overrides)
        return lifecycle.create_order(**kwargs)

    return _factory


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a config dict exercising a few non-default values."""
    return {
        "server": {"port": 9090},
        "lifecycle": {"acceptance_window_seconds": 3600},
        "sweeper": {"enabled": False},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup: autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the AtelierConfig singleton before and after every test."""
    from atelier.config.atelier_config import AtelierConfig

    AtelierConfig.reset()
    yield
    AtelierConfig.reset()


@pytest.fixture(autouse=True)
def restore_atelier_loggers():
    """Undo ``configure_logging`` side effects so caplog keeps working."""
    import logging

    names = ("atelier", "atelier.access", "atelier.audit")
    saved = {}
    for name in names:
        lg = logging.getLogger(name)
        saved[name] = (lg.level, list(lg.handlers), lg.propagate)
    yield
    for name, (level, handlers, propagate) in saved.items():
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.handlers[:] = handlers
        lg.propagate = propagate


# ---------------------------------------------------------------------------
# Flask app: in-memory store, manual clock, sweeper off
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(settings, store, clock):
    from atelier.app.factory import create_app

    application = create_app(settings=settings, store=store, clock=clock)
    application.config["TESTING"] = True
    yield application
    application.extensions["container"].shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def container(app):
    return app.extensions["container"]


@pytest.fixture()
def place_order(client):
    """POST an order and return the JSON body."""

    def _place(**overrides):
        payload = {
            "customer_id": "cust-1",
            "producer_id": "tailor-1",
            "price": "250.00",
            "description": "Wool coat",
            "attributes": {"chest_cm": 104},
        }
        payload.update(overrides)
        resp = client.post("/orders", json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    return _place
