from __future__ import annotations

from typing import ContextManager, List, Optional, Protocol

# Key namespaces. A key is "<namespace>/<primary key>", e.g.
# "accounts/alice" or "sessions/<uuid>".
ACCOUNTS = "accounts"
SESSIONS = "sessions"
GUILDS = "guilds"


def make_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


def split_key(key: str) -> tuple[str, str]:
    namespace, _, name = key.partition("/")
    if not namespace or not name:
        raise ValueError(f"Invalid storage key: {key!r}")
    return namespace, name


class KeyValueStore(Protocol):
    """
    Abstraction over entity persistence.

    Implementations are responsible for:
    - Storing opaque byte documents under "<namespace>/<name>" keys.
    - Making every `put` durable before returning.
    - Hiding any filesystem / SQL details from the application layer.

    They must not cache: every `get` observes the latest `put`.
    """

    def get(self, key: str) -> Optional[bytes]:
        """Return the document stored under `key`, or None if absent."""

        ...

    def put(self, key: str, value: bytes) -> None:
        """
        Store `value` under `key`, replacing any previous document.

        Implementations should make the replacement atomic so a reader
        never sees a half-written document.
        """

        ...

    def delete(self, key: str) -> None:
        """Remove `key`. Deleting an absent key is not an error."""

        ...

    def list_keys(self, prefix: str) -> List[str]:
        """Return all keys that start with `prefix`, sorted."""

        ...

    def lock(self, key: str) -> ContextManager[None]:
        """
        Return a re-entrant mutex for `key`.

        Repositories hold it around check-then-write and
        read-modify-write sequences so concurrent callers cannot lose
        each other's updates.
        """

        ...
