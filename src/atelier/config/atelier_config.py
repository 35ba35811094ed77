"""ATELIER configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    AtelierConfig(config_file="/etc/atelier/config.yaml")

    # 2. Any module retrieves it afterwards
    from atelier.config import get_config
    cfg = get_config()
    cfg.settings.lifecycle.acceptance_window_seconds  # typed access

    # 3. Extension / dynamic access
    cfg.get("hooks.max_workers", default=4)

Loading runs in a fixed order: read YAML/JSON, resolve ``${VAR}``
references, validate against the bundled JSON Schema, run cross-field
checks, then build the typed settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from atelier.config.settings import AtelierSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_MIN_ACCEPTANCE_WINDOW = 60

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AtelierConfig | None = None


def get_config() -> AtelierConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`AtelierConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AtelierConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:  # noqa: PTH123
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError([f"{path}: top level must be a mapping"])
    return data


def _schema_errors(data: dict) -> list[str]:
    schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        where = ".".join(str(p) for p in err.absolute_path) or "(root)"
        errors.append(f"{where}: {err.message}")
    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AtelierConfig:
    """Central configuration for the ATELIER service.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings` and the raw dict via
    :pyattr:`data` / :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        global _instance  # noqa: PLW0603

        self._path = Path(config_file)
        if not self._path.is_file():
            raise ConfigValidationError([f"Config file not found: {self._path}"])

        self._data = _read_file(self._path)
        # Resolve before validation so substituted values meet the schema.
        _resolve_env_vars(self._data)

        errors = _schema_errors(self._data)
        if errors:
            raise ConfigValidationError(errors)
        self.additional_checks()

        self._settings: AtelierSettings = build_settings(self._data)
        _instance = self
        log.debug("Loaded configuration from %s", self._path)

    # -- access -------------------------------------------------------------

    @property
    def data(self) -> dict:
        return self._data

    @property
    def settings(self) -> AtelierSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def get(self, dotted: str, default: Any = None) -> Any:  # noqa: ANN401
        """Look up a raw value by dot path, e.g. ``"sweeper.interval_seconds"``."""
        node: Any = self._data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:
        """Semantic and cross-field validation run after the schema passes."""
        errors: list[str] = []
        warnings: list[str] = []

        lifecycle = self._data.get("lifecycle") or {}
        sweeper = self._data.get("sweeper") or {}
        database = self._data.get("database") or {}
        api = self._data.get("api") or {}
        hooks = self._data.get("hooks") or {}

        window = lifecycle.get("acceptance_window_seconds", 172800)
        if window < _MIN_ACCEPTANCE_WINDOW:
            errors.append(
                f"lifecycle.acceptance_window_seconds must be at least "
                f"{_MIN_ACCEPTANCE_WINDOW} (got {window})",
            )

        interval = sweeper.get("interval_seconds", 300)
        if sweeper.get("enabled", True) and interval > window:
            warnings.append(
                f"sweeper.interval_seconds ({interval}) exceeds the acceptance "
                f"window ({window}); overdue orders may stay PENDING for a full interval",
            )

        if database:
            min_conn = database.get("min_connections", 2)
            max_conn = database.get("max_connections", 10)
            if min_conn > max_conn:
                errors.append(
                    f"database.min_connections ({min_conn}) must be <= "
                    f"database.max_connections ({max_conn})",
                )

        default_page = api.get("default_page_size", 50)
        max_page = api.get("max_page_size", 200)
        if default_page > max_page:
            errors.append(
                f"api.default_page_size ({default_page}) must be <= "
                f"api.max_page_size ({max_page})",
            )

        for idx, entry in enumerate(hooks.get("registered", [])):
            class_path = entry.get("class", "")
            if not _CLASS_PATH_RE.match(class_path):
                errors.append(
                    f"hooks.registered[{idx}].class '{class_path}' is not a "
                    "dotted 'package.module.ClassName' path",
                )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    def reload_settings(self) -> AtelierSettings:
        """Re-read the config file and rebuild settings.

        Does not reset the singleton.
        """
        new_data = _read_file(self._path)
        _resolve_env_vars(new_data)
        errors = _schema_errors(new_data)
        if errors:
            raise ConfigValidationError(errors)
        return build_settings(new_data)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        return f"<AtelierConfig config_file={self._path}>"
