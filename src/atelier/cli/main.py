"""ATELIER command-line entry point.

Usage::

    atelier -c /etc/atelier/config.yaml
    atelier -c config.yaml --validate-only
    atelier -c config.yaml serve --dev
    atelier -c config.yaml sweep
    atelier -c config.yaml inspect order 42
    atelier -c config.yaml db init
    python -m atelier -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from atelier import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atelier",
        description="ATELIER: made-to-order commission lifecycle service",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Start the ATELIER server")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    subparsers.add_parser("sweep", help="Run one acceptance-deadline sweep and exit")

    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("init", help="Apply the bundled schema")
    db_sub.add_parser("status", help="Check database connectivity")

    inspect_parser = subparsers.add_parser("inspect", help="Inspect stored orders")
    inspect_sub = inspect_parser.add_subparsers(dest="inspect_command")
    order_parser = inspect_sub.add_parser("order", help="Inspect an order by id or number")
    order_parser.add_argument("resource_id", help="Order id or order number")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"atelier: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # Basic stderr logging until the config is loaded
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        from atelier.config import AtelierConfig, ConfigValidationError

        config = AtelierConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from atelier.logging import configure_logging

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command

    if command == "sweep":
        from atelier.cli.commands.sweep import run_sweep

        run_sweep(config, args)
    elif command == "db":
        from atelier.cli.commands.db import run_db

        run_db(config, args)
    elif command == "inspect":
        from atelier.cli.commands.inspect import run_inspect

        run_inspect(config, args)
    else:
        # No subcommand means serve
        from atelier.cli.commands.serve import run_serve

        _print_settings_summary(config)
        try:
            run_serve(config, args)
        except Exception as exc:
            if args.debug:
                raise
            _print_error(f"server failed to start: {exc}")
            sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    store = (
        f"postgresql://{s.database.user}@{s.database.host}:{s.database.port}/{s.database.database}"
        if s.database
        else "in-memory"
    )
    lines = [
        f"config:            {config!r}",
        f"listen:            {s.server.bind}:{s.server.port}",
        f"store:             {store}",
        f"acceptance window: {s.lifecycle.acceptance_window_seconds}s",
        f"sweeper:           "
        + (f"every {s.sweeper.interval_seconds}s" if s.sweeper.enabled else "disabled"),
        f"hooks:             {len(s.hooks.registered)} registered",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
