"""Order entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from atelier.core.types import OrderStatus, RejectionReason

if TYPE_CHECKING:
    from collections.abc import Mapping

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class Order:
    """A made-to-order commission.

    ``version`` starts at 1 and is bumped by the store on every
    conditional write; callers pass the version they loaded back into
    the lifecycle engine as the compare-and-set token.
    """

    id: int
    order_number: str
    customer_id: str
    producer_id: str
    price: Decimal
    status: OrderStatus
    acceptance_deadline: datetime
    description: str = ""
    product_name: str = ""
    payment_reference: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    is_accepted: bool = False
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    rejection_reason: RejectionReason | None = None
    version: int = 1
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def deadline_passed(self, now: datetime) -> bool:
        """True once *now* is strictly past the acceptance deadline."""
        return now > self.acceptance_deadline
