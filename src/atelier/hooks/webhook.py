"""Webhook delivery hook.

POSTs each event context as JSON to the configured URL.  Failures are
raised so the registry's retry and dead-letter handling applies.

Config::

    hooks:
      registered:
        - class: atelier.hooks.webhook.WebhookHook
          events: [order.transitioned]
          config:
            url: https://chat.example.com/relay
            timeout_seconds: 5
            headers: {X-Relay-Token: "${RELAY_TOKEN}"}
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.error
import urllib.request

from atelier.hooks.base import Hook

log = logging.getLogger(__name__)


class WebhookHook(Hook):
    """Relays lifecycle events to an HTTP endpoint."""

    @classmethod
    def validate_config(cls, config: dict) -> None:
        url = config.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            msg = "Webhook hook 'url' must be an http(s) URL"
            raise ValueError(msg)
        headers = config.get("headers", {})
        if not isinstance(headers, dict):
            msg = "Webhook hook 'headers' must be a mapping"
            raise ValueError(msg)

    def on_order_created(self, ctx: dict) -> None:
        self._post("order.created", ctx)

    def on_order_transition(self, ctx: dict) -> None:
        self._post("order.transitioned", ctx)

    def on_progress_updated(self, ctx: dict) -> None:
        self._post("progress.updated", ctx)

    def _post(self, event: str, ctx: dict) -> None:
        url = self.config["url"]
        payload = json.dumps({"event": event, "data": ctx}).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        headers.update(self.config.get("headers", {}))
        req = urllib.request.Request(url, data=payload, method="POST", headers=headers)

        try:
            with urllib.request.urlopen(  # noqa: S310
                req,
                timeout=self.config.get("timeout_seconds", 10),
            ) as resp:
                log.debug(
                    "Webhook delivered: url=%s event=%s order=%s status=%s",
                    url,
                    event,
                    ctx.get("order_id", "?"),
                    resp.status,
                )
        except urllib.error.HTTPError as exc:
            body = ""
            with contextlib.suppress(Exception):
                body = exc.read().decode("utf-8", errors="replace")[:200]
            log.warning("Webhook %s returned HTTP %d: %s", url, exc.code, body)
            raise
