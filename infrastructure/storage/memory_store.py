from __future__ import annotations

import threading
from typing import ContextManager, Dict, List, Optional

from domain.repositories import KeyValueStore

from .locks import KeyLocks


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dictionary-backed implementation of `KeyValueStore`.

    Used by the tests and by the `memory` storage backend. Nothing
    survives the process.
    """

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._guard = threading.Lock()
        self._locks = KeyLocks()

    def get(self, key: str) -> Optional[bytes]:
        with self._guard:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._guard:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._guard:
            self._data.pop(key, None)

    def list_keys(self, prefix: str) -> List[str]:
        with self._guard:
            return sorted(k for k in self._data if k.startswith(prefix))

    def lock(self, key: str) -> ContextManager[None]:
        return self._locks.hold(key)
