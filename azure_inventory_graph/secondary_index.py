"""
Secondary index for Azure Inventory Graph.

Maps a normalized resource id to the orchestration stack that declared it, so
VMs and nested stacks can find their owning stack without rescanning every
stack resource. One index exists per graph-build run.
"""

import logging
import threading
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class SecondaryIndex:
    """Flat key to owner map with last-write-wins semantics.

    Every put is journaled with the owner it replaced, so the writes of a
    failed record can be undone together with its entities.
    """

    def __init__(self, name: str = 'stack_resources'):
        self.name = name
        self._entries = {}
        self._journal: List[Tuple[str, Optional[Any]]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key is not None and key.lower() in self._entries

    def put(self, key: str, owner: Any) -> None:
        """Insert or overwrite the owner for ``key``."""
        normalized = key.lower()
        with self._lock:
            previous = self._entries.get(normalized)
            if previous is not None and previous is not owner:
                # Provider ids are assumed unique; a clash keeps the later owner
                logger.debug(f"{self.name} index: {normalized} reassigned to a different owner")
            self._journal.append((normalized, previous))
            self._entries[normalized] = owner

    def get(self, key: Optional[str]) -> Optional[Any]:
        if key is None:
            return None
        return self._entries.get(key.lower())

    def items(self):
        with self._lock:
            return list(self._entries.items())

    def savepoint(self) -> int:
        with self._lock:
            return len(self._journal)

    def rollback(self, savepoint: int) -> None:
        """Undo every put made since ``savepoint``, restoring replaced owners."""
        with self._lock:
            while len(self._journal) > savepoint:
                key, previous = self._journal.pop()
                if previous is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = previous

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._journal.clear()
