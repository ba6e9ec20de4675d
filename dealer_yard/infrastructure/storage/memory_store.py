"""In-process document store with path subscriptions.

Values live in a nested dict tree. As in the hosted realtime database the
dashboard uses, writing ``None`` removes a node, empty branches are pruned and
a subscriber receives the current value on subscribe and again after every
write that touches its path.
"""
from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


def split_path(path: str) -> tuple[str, ...]:
    parts = tuple(part for part in str(path).split("/") if part)
    if not parts:
        raise ValueError("Store path must not be empty")
    return parts


def _related(left: tuple[str, ...], right: tuple[str, ...]) -> bool:
    size = min(len(left), len(right))
    return left[:size] == right[:size]


class InMemoryDocumentStore:
    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._root: dict[str, Any] = copy.deepcopy(data) if data else {}
        self._lock = threading.RLock()
        self._subscribers: dict[int, tuple[tuple[str, ...], Callable[[Any], None]]] = {}
        self._next_token = 0

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        parts = split_path(path)
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (parts, callback)
            current = self._read(parts)
        callback(current)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    async def get(self, path: str) -> Any:
        with self._lock:
            return self._read(split_path(path))

    async def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        if value is None:
            await self.remove(path)
            return
        with self._lock:
            node = self._root
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = copy.deepcopy(value)
            self._persist()
        self._notify(parts)

    async def remove(self, path: str) -> None:
        parts = split_path(path)
        with self._lock:
            trail = [self._root]
            for part in parts[:-1]:
                child = trail[-1].get(part)
                if not isinstance(child, dict):
                    return
                trail.append(child)
            if parts[-1] not in trail[-1]:
                return
            del trail[-1][parts[-1]]
            for depth in range(len(parts) - 2, -1, -1):
                if trail[depth + 1]:
                    break
                del trail[depth][parts[depth]]
            self._persist()
        self._notify(parts)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._root)

    def _read(self, parts: tuple[str, ...]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held after each write."""

    def _notify(self, changed: tuple[str, ...]) -> None:
        with self._lock:
            targets = [
                (token, parts, callback)
                for token, (parts, callback) in self._subscribers.items()
                if _related(parts, changed)
            ]
        for token, parts, callback in targets:
            with self._lock:
                if token not in self._subscribers:
                    continue
                value = self._read(parts)
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber for %s raised", "/".join(parts))
