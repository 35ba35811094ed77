"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from atelier.config import get_config

    lifecycle = get_config().settings.lifecycle
    print(lifecycle.acceptance_window_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 2),
        worker_class=d.get("worker_class", "gthread"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
    )


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiSettings:
    """Listing endpoints: page sizes."""

    default_page_size: int
    max_page_size: int


def _build_api(data: dict | None) -> ApiSettings:
    d = data or {}
    return ApiSettings(
        default_page_size=d.get("default_page_size", 50),
        max_page_size=d.get("max_page_size", 200),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file, syslog, rotation)."""

    enabled: bool
    file: str | None
    syslog: bool
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", False),
            file=a.get("file"),
            syslog=a.get("syslog", False),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings | None:
    """Absent section means the in-process store is used."""
    if not data:
        return None
    d = data
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LifecycleSettings:
    """Order lifecycle: acceptance window and interactive retry budget."""

    acceptance_window_seconds: int
    transition_max_retries: int
    order_number_prefix: str
    order_number_attempts: int


def _build_lifecycle(data: dict | None) -> LifecycleSettings:
    d = data or {}
    return LifecycleSettings(
        acceptance_window_seconds=d.get("acceptance_window_seconds", 172800),
        transition_max_retries=d.get("transition_max_retries", 3),
        order_number_prefix=d.get("order_number_prefix", "ORD"),
        order_number_attempts=d.get("order_number_attempts", 5),
    )


# ---------------------------------------------------------------------------
# Sweeper
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SweeperSettings:
    """Background acceptance-deadline sweep."""

    enabled: bool
    interval_seconds: int
    batch_size: int | None
    max_backoff_multiplier: int


def _build_sweeper(data: dict | None) -> SweeperSettings:
    d = data or {}
    return SweeperSettings(
        enabled=d.get("enabled", True),
        interval_seconds=d.get("interval_seconds", 300),
        batch_size=d.get("batch_size"),
        max_backoff_multiplier=d.get("max_backoff_multiplier", 8),
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressSettings:
    max_name_length: int


def _build_progress(data: dict | None) -> ProgressSettings:
    d = data or {}
    return ProgressSettings(max_name_length=d.get("max_name_length", 64))


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HookEntrySettings:
    """Single registered hook entry with events and config."""

    class_path: str
    enabled: bool
    events: tuple[str, ...]
    timeout_seconds: int | None
    config: dict[str, Any]


@dataclass(frozen=True)
class HookSettings:
    """Notification hook settings (workers, retries, registry)."""

    timeout_seconds: int
    max_workers: int
    max_retries: int
    retry_backoff_seconds: float
    dead_letter_log: str | None
    registered: tuple[HookEntrySettings, ...]


def _build_hooks(data: dict | None) -> HookSettings:
    from atelier.hooks.events import KNOWN_EVENTS  # noqa: PLC0415

    d = data or {}
    registered = []
    for idx, entry in enumerate(d.get("registered", [])):
        events = tuple(entry.get("events", []))
        for evt in events:
            if evt not in KNOWN_EVENTS:
                msg = (
                    f"hooks.registered[{idx}].events: unknown event "
                    f"'{evt}'. Known events: {sorted(KNOWN_EVENTS)}"
                )
                raise ValueError(msg)
        registered.append(
            HookEntrySettings(
                class_path=entry["class"],
                enabled=entry.get("enabled", True),
                events=events,
                timeout_seconds=entry.get("timeout_seconds"),
                config=entry.get("config", {}),
            )
        )
    return HookSettings(
        timeout_seconds=d.get("timeout_seconds", 30),
        max_workers=d.get("max_workers", 4),
        max_retries=d.get("max_retries", 0),
        retry_backoff_seconds=d.get("retry_backoff_seconds", 1.0),
        dead_letter_log=d.get("dead_letter_log"),
        registered=tuple(registered),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AtelierSettings:
    server: ServerSettings
    api: ApiSettings
    logging: LoggingSettings
    database: DatabaseSettings | None
    lifecycle: LifecycleSettings
    sweeper: SweeperSettings
    progress: ProgressSettings
    hooks: HookSettings


def build_settings(data: dict) -> AtelierSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`AtelierConfig` initialization after
    schema validation and environment-variable resolution.  An empty
    dict yields a complete tree of defaults.
    """
    return AtelierSettings(
        server=_build_server(data.get("server")),
        api=_build_api(data.get("api")),
        logging=_build_logging(data.get("logging")),
        database=_build_database(data.get("database")),
        lifecycle=_build_lifecycle(data.get("lifecycle")),
        sweeper=_build_sweeper(data.get("sweeper")),
        progress=_build_progress(data.get("progress")),
        hooks=_build_hooks(data.get("hooks")),
    )
