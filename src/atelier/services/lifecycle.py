"""Order lifecycle service: creation, transitions and queries.

Every status change goes through :meth:`OrderLifecycleService.transition`,
which validates the action against fresh state and then performs a
single compare-and-set write against the caller's expected version.
Interactive callers and the deadline sweeper share this entry point, so
at most one of any set of concurrent writes on the same version lands.
"""

from __future__ import annotations

import logging
import math
import secrets
import string
from collections.abc import Mapping
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Protocol

from atelier.app.errors import (
    ConcurrentModification,
    DeadlineExpired,
    InvalidInput,
    InvalidTransition,
    NotFound,
)
from atelier.core.state import DEADLINE_BOUND_ACTIONS, log_transition, resolve_action
from atelier.core.types import OrderStatus, RejectionReason, TransitionAction
from atelier.hooks.events import OrderCreatedEvent, OrderTransitionEvent
from atelier.models.order import Order
from atelier.repositories.base import DuplicateOrderNumberError

if TYPE_CHECKING:
    from datetime import datetime

    from atelier.config.settings import LifecycleSettings
    from atelier.core.clock import Clock
    from atelier.hooks.emitter import NotificationEmitter
    from atelier.repositories.base import OrderStore

log = logging.getLogger(__name__)

_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

# Prices are stored as NUMERIC(14, 2).
_CENT = Decimal("0.01")
_PRICE_LIMIT = Decimal(10) ** 12

# Terminal status a lost CAS may be reconciled against.
_SETTLED_BY: dict[TransitionAction, OrderStatus] = {
    TransitionAction.REJECT: OrderStatus.REJECTED,
    TransitionAction.EXPIRE: OrderStatus.REJECTED,
    TransitionAction.COMPLETE: OrderStatus.COMPLETED,
}


class IdentityResolver(Protocol):
    """Answers whether a customer or producer id is known."""

    def exists(self, kind: str, party_id: str) -> bool: ...


def _coerce_price(value: Any) -> Decimal:  # noqa: ANN401
    if isinstance(value, bool):
        msg = "price must be a number"
        raise InvalidInput(msg)
    if isinstance(value, float) and not math.isfinite(value):
        msg = "price must be a finite number"
        raise InvalidInput(msg)
    try:
        price = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as err:
        msg = f"price must be a number, got {value!r}"
        raise InvalidInput(msg) from err
    if not price.is_finite():
        msg = "price must be a finite number"
        raise InvalidInput(msg)
    if price < 0:
        msg = f"price must be >= 0, got {price}"
        raise InvalidInput(msg)
    if price >= _PRICE_LIMIT:
        msg = f"price must be below {_PRICE_LIMIT:,}, got {price}"
        raise InvalidInput(msg)
    cents = price.quantize(_CENT)
    if cents != price:
        msg = f"price must have at most 2 decimal places, got {price}"
        raise InvalidInput(msg)
    return cents


def _coerce_action(value: Any) -> TransitionAction:  # noqa: ANN401
    try:
        return TransitionAction(value)
    except ValueError as err:
        names = ", ".join(a.value for a in TransitionAction)
        msg = f"Unknown action {value!r}; expected one of: {names}"
        raise InvalidInput(msg) from err


def _require_party(kind: str, value: Any) -> str:  # noqa: ANN401
    if not isinstance(value, str) or not value.strip():
        msg = f"{kind}_id must be a non-empty string"
        raise InvalidInput(msg)
    return value.strip()


class OrderLifecycleService:
    """Manage the order state machine."""

    def __init__(  # noqa: PLR0913
        self,
        store: OrderStore,
        clock: Clock,
        settings: LifecycleSettings,
        emitter: NotificationEmitter | None = None,
        identity_resolver: IdentityResolver | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._settings = settings
        self._emitter = emitter
        self._identities = identity_resolver

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(  # noqa: PLR0913
        self,
        customer_id: str,
        producer_id: str,
        price: Any,  # noqa: ANN401
        description: str = "",
        attributes: Mapping[str, Any] | None = None,
        *,
        product_name: str = "",
        payment_reference: str | None = None,
    ) -> Order:
        """Place a new PENDING order.

        Parameters
        ----------
        customer_id, producer_id:
            Opaque party identifiers; checked against the identity
            resolver when one is configured.
        price:
            Non-negative finite amount; normalised to :class:`Decimal`.
        description:
            Free text.
        attributes:
            Measurement and specification data, stored as given.
        product_name, payment_reference:
            Optional pass-through fields.

        Raises
        ------
        InvalidInput
            Bad price, empty party ids, non-mapping attributes, or an
            unknown party.

        """
        customer_id = _require_party("customer", customer_id)
        producer_id = _require_party("producer", producer_id)
        amount = _coerce_price(price)
        if attributes is None:
            attributes = {}
        if not isinstance(attributes, Mapping):
            msg = "attributes must be an object"
            raise InvalidInput(msg)
        if not isinstance(description, str):
            msg = "description must be a string"
            raise InvalidInput(msg)
        if payment_reference is not None and not isinstance(payment_reference, str):
            msg = "payment_reference must be a string"
            raise InvalidInput(msg)

        if self._identities is not None:
            for kind, party in (("customer", customer_id), ("producer", producer_id)):
                if not self._identities.exists(kind, party):
                    msg = f"Unknown {kind} '{party}'"
                    raise InvalidInput(msg)

        now = self._clock.now()
        deadline = now + timedelta(seconds=self._settings.acceptance_window_seconds)

        order = None
        for _ in range(self._settings.order_number_attempts):
            candidate = Order(
                id=0,
                order_number=self._generate_order_number(now),
                customer_id=customer_id,
                producer_id=producer_id,
                price=amount,
                status=OrderStatus.PENDING,
                acceptance_deadline=deadline,
                description=description,
                product_name=product_name or "",
                payment_reference=payment_reference,
                attributes=dict(attributes),
                created_at=now,
                updated_at=now,
            )
            try:
                order = self._store.insert(candidate)
                break
            except DuplicateOrderNumberError:
                log.debug("Order number %s taken, regenerating", candidate.order_number)
        if order is None:
            msg = "Could not allocate a unique order number"
            raise RuntimeError(msg)

        log.info(
            "Created order %s (%s) for customer %s, producer %s; deadline %s",
            order.id,
            order.order_number,
            customer_id,
            producer_id,
            deadline.isoformat(),
        )
        self._emit(
            OrderCreatedEvent(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=customer_id,
                producer_id=producer_id,
                acceptance_deadline=deadline,
                timestamp=now,
            ),
        )
        return order

    def _generate_order_number(self, now: datetime) -> str:
        suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(4))
        return f"{self._settings.order_number_prefix}-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        order_id: int,
        expected_version: int,
        action: TransitionAction | str,
    ) -> Order:
        """Apply *action* to the order if it still holds *expected_version*.

        Checks run in a fixed order against freshly loaded state:
        existence, action legality, deadline, then version.  Nothing is
        written unless all of them pass and the conditional write wins.

        Raises
        ------
        InvalidInput
            *action* does not name a transition.
        NotFound
            Unknown *order_id*.
        InvalidTransition
            *action* is not legal from the current status, or EXPIRE on
            an order whose deadline has not passed.
        DeadlineExpired
            ACCEPT or REJECT after the acceptance deadline.
        ConcurrentModification
            The stored version is not *expected_version*, or another
            writer won the compare-and-set.

        """
        action = _coerce_action(action)
        order = self.get_order(order_id)
        now = self._clock.now()

        target = resolve_action(order.status, action)

        if action in DEADLINE_BOUND_ACTIONS and order.deadline_passed(now):
            msg = (
                f"Order {order.order_number} can no longer be {target.value}: "
                f"the acceptance deadline passed at {order.acceptance_deadline.isoformat()}"
            )
            raise DeadlineExpired(msg)
        if action == TransitionAction.EXPIRE and (
            order.is_accepted or not order.deadline_passed(now)
        ):
            msg = f"Order {order.order_number} is not past its acceptance deadline"
            raise InvalidTransition(msg)

        if order.version != expected_version:
            msg = (
                f"Order {order.order_number} is at version {order.version}, "
                f"not {expected_version}; reload and retry"
            )
            raise ConcurrentModification(msg)

        updated = self._store.update_if_version(
            order.id,
            expected_version,
            self._changes_for(action, target, now),
        )
        if updated is None:
            msg = f"Order {order.order_number} was modified concurrently; reload and retry"
            raise ConcurrentModification(msg)

        reason = updated.rejection_reason.value if updated.rejection_reason else None
        log_transition(updated.id, order.status, updated.status, action=action, reason=reason)
        self._emit(
            OrderTransitionEvent(
                order_id=updated.id,
                previous_status=order.status,
                new_status=updated.status,
                timestamp=now,
                kind=action,
            ),
        )
        return updated

    @staticmethod
    def _changes_for(
        action: TransitionAction,
        target: OrderStatus,
        now: datetime,
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {"status": target, "updated_at": now}
        if action == TransitionAction.ACCEPT:
            changes.update(is_accepted=True, accepted_at=now)
        elif action == TransitionAction.REJECT:
            changes["rejection_reason"] = RejectionReason.PRODUCER
        elif action == TransitionAction.EXPIRE:
            changes["rejection_reason"] = RejectionReason.DEADLINE
        elif action == TransitionAction.COMPLETE:
            # Accepted flags track the ACCEPTED status only.
            changes.update(completed_at=now, is_accepted=False, accepted_at=None)
        return changes

    def transition_idempotent(
        self,
        order_id: int,
        expected_version: int,
        action: TransitionAction | str,
    ) -> Order:
        """Like :meth:`transition`, but a lost race that already produced the
        requested terminal status is returned as success.

        A REJECT that loses to the sweeper's EXPIRE (or the reverse) ends
        with the order REJECTED either way; the loser gets the fresh
        order back instead of :class:`ConcurrentModification`.
        """
        try:
            return self.transition(order_id, expected_version, action)
        except ConcurrentModification:
            settled = _SETTLED_BY.get(TransitionAction(action))
            fresh = self._store.find_by_id(order_id)
            if settled is not None and fresh is not None and fresh.status == settled:
                log.debug(
                    "Order %s already %s; treating %s as settled",
                    order_id,
                    settled.value,
                    TransitionAction(action).value,
                )
                return fresh
            raise

    def _apply_with_retry(self, order_id: int, action: TransitionAction) -> Order:
        attempts = self._settings.transition_max_retries + 1
        for attempt in range(1, attempts + 1):
            order = self.get_order(order_id)
            try:
                return self.transition_idempotent(order.id, order.version, action)
            except ConcurrentModification:
                if attempt == attempts:
                    raise
                log.debug(
                    "Retrying %s on order %s after conflict (attempt %d/%d)",
                    action.value,
                    order_id,
                    attempt,
                    attempts,
                )
        msg = "unreachable"
        raise AssertionError(msg)

    def accept(self, order_id: int) -> Order:
        """Accept the order against its current version, retrying conflicts."""
        return self._apply_with_retry(order_id, TransitionAction.ACCEPT)

    def reject(self, order_id: int) -> Order:
        """Reject the order against its current version, retrying conflicts."""
        return self._apply_with_retry(order_id, TransitionAction.REJECT)

    def complete(self, order_id: int) -> Order:
        """Complete the order against its current version, retrying conflicts."""
        return self._apply_with_retry(order_id, TransitionAction.COMPLETE)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self._store.find_by_id(order_id)
        if order is None:
            msg = f"Order {order_id} not found"
            raise NotFound(msg)
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        order = self._store.find_by_number(order_number)
        if order is None:
            msg = f"Order {order_number} not found"
            raise NotFound(msg)
        return order

    def list_customer_orders(
        self,
        customer_id: str,
        cursor: int | None = None,
        limit: int = 50,  # noqa: PLR2004
    ) -> tuple[list[Order], int | None]:
        """Return ``(orders, next_cursor)`` for a customer, newest first."""
        return self._store.find_by_party_paginated(
            customer_id=customer_id,
            cursor=cursor,
            limit=limit,
        )

    def list_producer_orders(
        self,
        producer_id: str,
        cursor: int | None = None,
        limit: int = 50,  # noqa: PLR2004
    ) -> tuple[list[Order], int | None]:
        """Return ``(orders, next_cursor)`` for a producer, newest first."""
        return self._store.find_by_party_paginated(
            producer_id=producer_id,
            cursor=cursor,
            limit=limit,
        )

    def list_pending_acceptance(
        self,
        producer_id: str,
        cursor: int | None = None,
        limit: int = 50,  # noqa: PLR2004
    ) -> tuple[list[Order], int | None]:
        """Orders the producer can still accept or reject right now."""
        return self._store.find_by_party_paginated(
            producer_id=producer_id,
            status=OrderStatus.PENDING,
            deadline_after=self._clock.now(),
            cursor=cursor,
            limit=limit,
        )

    def producer_summary(self, producer_id: str) -> dict[str, Any]:
        total, pending, completed, revenue = self._store.producer_totals(producer_id)
        return {
            "total_orders": total,
            "pending_orders": pending,
            "completed_orders": completed,
            "total_revenue": revenue,
        }

    # ------------------------------------------------------------------

    def _emit(self, event: Any) -> None:  # noqa: ANN401
        if self._emitter is not None:
            self._emitter.emit(event)
