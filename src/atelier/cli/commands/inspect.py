"""Inspect subcommand: print an order and its progress for debugging.

Usage::

    atelier -c config.yaml inspect order 42
    atelier -c config.yaml inspect order ORD-20260101-AB12
"""

from __future__ import annotations

import json
import sys

from atelier.app.errors import NotFound
from atelier.cli.bootstrap import build_container, require_database


def run_inspect(config, args) -> None:
    """Dispatch to the appropriate inspect sub-handler."""
    sub = getattr(args, "inspect_command", None)
    if sub != "order":
        sys.stderr.write("usage: atelier inspect order <id-or-number>\n")
        sys.exit(1)
    require_database(config, "inspect")
    _inspect_order(build_container(config), args.resource_id)


def _inspect_order(container, resource_id: str) -> None:
    from atelier.api.serializers import serialize_order, serialize_progress

    lifecycle = container.lifecycle
    try:
        if resource_id.isdigit():
            order = lifecycle.get_order(int(resource_id))
        else:
            order = lifecycle.get_order_by_number(resource_id)
    except NotFound as exc:
        sys.stderr.write(f"error: {exc.detail}\n")
        sys.exit(1)

    result = serialize_order(order)
    result["progress"] = serialize_progress(container.progress.get_progress(order.id))
    sys.stdout.write(json.dumps(result, indent=2) + "\n")
