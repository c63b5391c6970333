"""In-memory store of raw hub objects."""

from __future__ import annotations

import threading
from typing import Protocol


class IdentityHubStore(Protocol):
    def add(self, hub_object: bytes) -> None:
        ...

    def get_all(self) -> set[bytes]:
        ...


class InMemoryIdentityHubStore:
    """Append-only set of hub objects, deduplicated by content.

    Safe for concurrent use; ``get_all`` returns a snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hub_objects: set[bytes] = set()

    def add(self, hub_object: bytes) -> None:
        with self._lock:
            self._hub_objects.add(bytes(hub_object))

    def get_all(self) -> set[bytes]:
        with self._lock:
            return set(self._hub_objects)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hub_objects)
