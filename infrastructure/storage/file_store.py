from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import ContextManager, List, Optional

from domain.repositories import KeyValueStore, split_key

from .locks import KeyLocks

logger = logging.getLogger(__name__)

_SEGMENT_REGEX = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")
_SUFFIX = ".json"


class FileKeyValueStore(KeyValueStore):
    """
    Directory-backed implementation of `KeyValueStore`.

    Each namespace is a directory under `root` and each document is a
    `<name>.json` file inside it, so "accounts/alice" lives at
    `<root>/accounts/alice.json`. Writes go to a temporary file in the
    same directory and are moved into place with `os.replace`, which is
    atomic on POSIX and Windows.
    """

    def __init__(self, root: str | os.PathLike) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._locks = KeyLocks()

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        namespace, name = split_key(key)
        # Both segments become path components; refuse anything that
        # could escape the root directory.
        if not _SEGMENT_REGEX.fullmatch(namespace) or not _SEGMENT_REGEX.fullmatch(name):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._root / namespace / f"{name}{_SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        with self._locks.hold(key):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(value)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        with self._locks.hold(key):
            path.unlink(missing_ok=True)

    def list_keys(self, prefix: str) -> List[str]:
        namespace_prefix, sep, name_prefix = prefix.partition("/")
        keys: List[str] = []
        if not self._root.exists():
            return keys

        for ns_dir in self._root.iterdir():
            if not ns_dir.is_dir():
                continue
            if sep and ns_dir.name != namespace_prefix:
                continue
            if not sep and not ns_dir.name.startswith(namespace_prefix):
                continue
            for entry in ns_dir.iterdir():
                # Skip in-flight temporary files.
                if entry.name.startswith(".") or entry.suffix != _SUFFIX:
                    continue
                name = entry.name[: -len(_SUFFIX)]
                if name.startswith(name_prefix):
                    keys.append(f"{ns_dir.name}/{name}")

        logger.debug("Listed %d keys under %r", len(keys), prefix)
        return sorted(keys)

    def lock(self, key: str) -> ContextManager[None]:
        return self._locks.hold(key)
