"""Document store persisted to a single JSON file."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from dealer_yard.infrastructure.storage.memory_store import InMemoryDocumentStore

logger = logging.getLogger(__name__)


def _load_tree(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable store file %s", path)
        return {}
    return data if isinstance(data, dict) else {}


class JsonFileDocumentStore(InMemoryDocumentStore):
    """Keeps the whole tree in memory and rewrites the file after every write."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        super().__init__(_load_tree(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(self._path.suffix + ".tmp")
        staging.write_text(
            json.dumps(self._root, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(staging, self._path)
