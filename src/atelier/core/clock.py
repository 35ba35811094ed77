"""Clock source shared by the lifecycle engine, tracker and sweeper.

Every deadline computation and comparison goes through a single
:class:`Clock` so that tests can substitute a controllable one.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Anything with a ``now()`` returning an aware UTC datetime."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def __repr__(self) -> str:
        return "<SystemClock>"
