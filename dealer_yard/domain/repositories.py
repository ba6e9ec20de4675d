"""Interfaces to the external collaborators of the lifecycle core."""
from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence

from .models import ScheduleEntry

Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Realtime key-value document store addressed by slash-separated paths."""

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Unsubscribe:
        ...

    async def get(self, path: str) -> Any:
        ...

    async def set(self, path: str, value: Any) -> None:
        ...

    async def remove(self, path: str) -> None:
        ...


class ScheduleFeed(Protocol):
    """Read-only stream of scheduled and in-transit units keyed by chassis."""

    def subscribe(self, callback: Callable[[Sequence[ScheduleEntry]], None]) -> Unsubscribe:
        ...


class YardCapacitySource(Protocol):
    """Supplies the baseline yard volume used for tier allocation."""

    async def min_volume(self, dealer_slug: str) -> int:
        ...
