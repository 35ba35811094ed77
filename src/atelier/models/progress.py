"""Progress state entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class ProgressState:
    """Milestone flags for one order.

    ``milestones`` is an open, string-keyed map; no vocabulary or
    ordering is implied.  An order with no recorded milestones yields
    an empty state with ``version == 0``.
    """

    order_id: int
    milestones: Mapping[str, bool] = field(default_factory=dict)
    version: int = 0
    updated_at: datetime = _EPOCH

    def __post_init__(self) -> None:
        object.__setattr__(self, "milestones", MappingProxyType(dict(self.milestones)))

    def is_complete(self, name: str) -> bool:
        return bool(self.milestones.get(name, False))

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "milestones": dict(self.milestones),
            "version": self.version,
            "updated_at": self.updated_at.isoformat(),
        }
