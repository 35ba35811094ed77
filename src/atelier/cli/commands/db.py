"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_db(config, args) -> None:
    """Handle db subcommands."""
    from atelier.cli.bootstrap import require_database

    require_database(config, "db")
    if args.db_command == "init":
        _db_init(config)
    elif args.db_command == "status":
        _db_status(config)
    else:
        sys.stderr.write("usage: atelier db {init,status}\n")
        sys.exit(1)


def _db_init(config) -> None:
    """Apply the bundled schema (idempotent)."""
    from pypgkit import SchemaManager

    from atelier.db import init_database
    from atelier.db.init import SCHEMA_PATH

    db = init_database(config.settings.database)
    SchemaManager(db).execute_sql_file(SCHEMA_PATH)
    sys.stdout.write(f"schema applied from {SCHEMA_PATH.name}\n")


def _db_status(config) -> None:
    """Check database connectivity and schema presence."""
    from atelier.db import init_database

    try:
        db = init_database(config.settings.database)
        tables = db.fetch_value(
            "SELECT count(*) FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name IN ('orders', 'order_progress')",
        )
    except Exception as exc:
        log.debug("db status failed", exc_info=True)
        sys.stderr.write(f"database unreachable: {exc}\n")
        sys.exit(1)
    sys.stdout.write(f"connected; {tables}/2 tables present\n")
