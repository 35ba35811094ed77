"""Tests for atelier.config: loading, env resolution, validation."""

from __future__ import annotations

import json
import logging

import pytest
import yaml

from atelier.config import AtelierConfig, ConfigValidationError, build_settings, get_config


def _write(tmp_path, data, name="config.yaml"):
    path = tmp_path / name
    if name.endswith(".json"):
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_yaml(self, tmp_config_file):
        cfg = AtelierConfig(config_file=tmp_config_file)
        assert cfg.settings.server.port == 9090
        assert cfg.settings.lifecycle.acceptance_window_seconds == 3600
        assert cfg.settings.sweeper.enabled is False
        assert get_config() is cfg

    def test_json(self, tmp_path, minimal_config_data):
        cfg = AtelierConfig(config_file=_write(tmp_path, minimal_config_data, "c.json"))
        assert cfg.settings.server.port == 9090

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        cfg = AtelierConfig(config_file=path)
        assert cfg.settings.lifecycle.acceptance_window_seconds == 172800
        assert cfg.settings.database is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="not found"):
            AtelierConfig(config_file=tmp_path / "nope.yaml")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            AtelierConfig(config_file=path)

    def test_get_config_before_init(self):
        with pytest.raises(RuntimeError, match="not initialised"):
            get_config()

    def test_dotted_get(self, tmp_config_file):
        cfg = AtelierConfig(config_file=tmp_config_file)
        assert cfg.get("server.port") == 9090
        assert cfg.get("server.missing", default="x") == "x"
        assert cfg.get("server.port.deeper") is None

    def test_repr(self, tmp_config_file):
        assert "config.yaml" in repr(AtelierConfig(config_file=tmp_config_file))


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------


class TestEnvResolution:
    def test_set_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ATELIER_DB_PASSWORD", "s3cret")
        db = {"database": "atelier", "user": "app", "password": "${ATELIER_DB_PASSWORD}"}
        data = {"database": db}
        cfg = AtelierConfig(config_file=_write(tmp_path, data))
        assert cfg.settings.database.password == "s3cret"

    def test_default_used(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ATELIER_DB_HOST", raising=False)
        db = {"database": "atelier", "user": "app", "host": "${ATELIER_DB_HOST:-db.internal}"}
        data = {"database": db}
        cfg = AtelierConfig(config_file=_write(tmp_path, data))
        assert cfg.settings.database.host == "db.internal"

    def test_unset_without_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ATELIER_NOPE", raising=False)
        data = {"hooks": {"dead_letter_log": "${ATELIER_NOPE}"}}
        with pytest.raises(ConfigValidationError, match="hooks.dead_letter_log"):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_inside_lists(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOOK_URL", "https://example.test/hook")
        data = {
            "hooks": {
                "registered": [
                    {
                        "class": "atelier.hooks.webhook.WebhookHook",
                        "config": {"url": "${HOOK_URL}"},
                    },
                ],
            },
        }
        cfg = AtelierConfig(config_file=_write(tmp_path, data))
        assert cfg.settings.hooks.registered[0].config == {"url": "https://example.test/hook"}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize(
        "data,fragment",
        [
            ({"unknown": {}}, "(root)"),
            ({"server": {"port": 0}}, "server.port"),
            ({"lifecycle": {"order_number_prefix": "ord"}}, "lifecycle.order_number_prefix"),
            ({"database": {"user": "app"}}, "database"),
            ({"sweeper": {"interval_seconds": "soon"}}, "sweeper.interval_seconds"),
        ],
    )
    def test_schema_errors(self, tmp_path, data, fragment):
        with pytest.raises(ConfigValidationError) as exc_info:
            AtelierConfig(config_file=_write(tmp_path, data))
        assert any(fragment in e for e in exc_info.value.errors)

    def test_window_too_short(self, tmp_path):
        data = {"lifecycle": {"acceptance_window_seconds": 30}}
        with pytest.raises(ConfigValidationError, match="at least 60"):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_pool_bounds(self, tmp_path):
        db = {"database": "a", "user": "u", "min_connections": 5, "max_connections": 2}
        data = {"database": db}
        with pytest.raises(ConfigValidationError, match="min_connections"):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_page_sizes(self, tmp_path):
        data = {"api": {"default_page_size": 500, "max_page_size": 100}}
        with pytest.raises(ConfigValidationError, match="default_page_size"):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_hook_class_path(self, tmp_path):
        data = {"hooks": {"registered": [{"class": "NotDotted"}]}}
        with pytest.raises(ConfigValidationError, match="dotted"):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_unknown_hook_event(self, tmp_path):
        data = {"hooks": {"registered": [{"class": "a.B", "events": ["order.deleted"]}]}}
        with pytest.raises(ConfigValidationError):
            AtelierConfig(config_file=_write(tmp_path, data))

    def test_slow_sweeper_warns(self, tmp_path, caplog):
        data = {
            "lifecycle": {"acceptance_window_seconds": 120},
            "sweeper": {"interval_seconds": 600},
        }
        with caplog.at_level(logging.WARNING, logger="atelier.config.atelier_config"):
            AtelierConfig(config_file=_write(tmp_path, data))
        assert any("exceeds the acceptance window" in r.getMessage() for r in caplog.records)

    def test_errors_are_collected(self, tmp_path):
        data = {
            "api": {"default_page_size": 500, "max_page_size": 100},
            "hooks": {"registered": [{"class": "bad"}]},
        }
        with pytest.raises(ConfigValidationError) as exc_info:
            AtelierConfig(config_file=_write(tmp_path, data))
        assert len(exc_info.value.errors) == 2
        assert str(exc_info.value).startswith("Configuration validation failed:")


# ---------------------------------------------------------------------------
# Reload and settings builders
# ---------------------------------------------------------------------------


class TestReload:
    def test_reload_reads_new_values(self, tmp_config_file):
        cfg = AtelierConfig(config_file=tmp_config_file)
        tmp_config_file.write_text(yaml.safe_dump({"server": {"port": 7000}}), encoding="utf-8")
        fresh = cfg.reload_settings()
        assert fresh.server.port == 7000
        assert cfg.settings.server.port == 9090

    def test_reload_rejects_invalid(self, tmp_config_file):
        cfg = AtelierConfig(config_file=tmp_config_file)
        tmp_config_file.write_text(yaml.safe_dump({"server": {"port": -1}}), encoding="utf-8")
        with pytest.raises(ConfigValidationError):
            cfg.reload_settings()


class TestBuildSettings:
    def test_defaults(self):
        s = build_settings({})
        assert s.lifecycle.acceptance_window_seconds == 172800
        assert s.lifecycle.transition_max_retries == 3
        assert s.sweeper.enabled is True
        assert s.sweeper.interval_seconds == 300
        assert s.sweeper.batch_size is None
        assert s.progress.max_name_length == 64
        assert s.api.max_page_size == 200
        assert s.hooks.registered == ()
        assert s.database is None

    def test_database_section(self):
        s = build_settings({"database": {"database": "atelier", "user": "app"}})
        assert s.database.host == "localhost"
        assert s.database.port == 5432
        assert s.database.auto_setup is False

    def test_unknown_hook_event(self):
        with pytest.raises(ValueError, match="unknown event"):
            build_settings({"hooks": {"registered": [{"class": "a.B", "events": ["nope"]}]}})

    def test_settings_are_frozen(self):
        s = build_settings({})
        with pytest.raises(AttributeError):
            s.lifecycle.acceptance_window_seconds = 1
