"""Sweep subcommand: run one acceptance-deadline pass and print the result.

Usage::

    atelier -c config.yaml sweep
"""

from __future__ import annotations

import json
import sys

from atelier.app.errors import StoreUnavailable
from atelier.cli.bootstrap import build_container, require_database


def run_sweep(config, args) -> None:  # noqa: ARG001
    require_database(config, "sweep")
    container = build_container(config)
    try:
        result = container.sweep_worker.run_once()
    except StoreUnavailable as exc:
        sys.stderr.write(f"error: {exc.detail}\n")
        sys.exit(2)
    finally:
        container.hook_registry.shutdown(wait=True)

    if result is None:
        sys.stderr.write("another instance is sweeping; nothing done\n")
        sys.exit(0)
    sys.stdout.write(json.dumps(result.to_dict()) + "\n")
