"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``ATELIER_CONFIG`` environment
variable.

Example::

    export ATELIER_CONFIG=/etc/atelier/config.yaml
    gunicorn "atelier.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("ATELIER_CONFIG")
if _config_path is None:
    sys.stderr.write("ATELIER_CONFIG environment variable is not set\n")
    sys.exit(1)

# Bootstrap the singleton before anything else imports it.
from atelier.config import AtelierConfig  # noqa: E402

_config = AtelierConfig(config_file=_config_path)

from atelier.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from atelier.db import init_database  # noqa: E402

_db = init_database(_config.settings.database) if _config.settings.database else None

from atelier.app import create_app  # noqa: E402

app = create_app(config=_config, database=_db)
