"""Configuration subsystem for ATELIER.

Public API::

    from atelier.config import get_config, AtelierConfig

    # At startup (CLI only):
    AtelierConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    window = cfg.settings.lifecycle.acceptance_window_seconds
"""

from atelier.config.atelier_config import (
    AtelierConfig,
    ConfigValidationError,
    get_config,
)
from atelier.config.settings import (
    ApiSettings,
    AtelierSettings,
    AuditLogSettings,
    DatabaseSettings,
    HookEntrySettings,
    HookSettings,
    LifecycleSettings,
    LoggingSettings,
    ProgressSettings,
    ServerSettings,
    SweeperSettings,
    build_settings,
)

__all__ = [
    "ApiSettings",
    "AtelierConfig",
    "AtelierSettings",
    "AuditLogSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "HookEntrySettings",
    "HookSettings",
    "LifecycleSettings",
    "LoggingSettings",
    "ProgressSettings",
    "ServerSettings",
    "SweeperSettings",
    "build_settings",
    "get_config",
]
