from __future__ import annotations

import sqlite3
from typing import ContextManager, List, Optional

from domain.repositories import KeyValueStore
from infrastructure.storage.locks import KeyLocks


class SqliteKeyValueStore(KeyValueStore):
    """
    SQLite-backed implementation of `KeyValueStore`.

    All namespaces share one `documents` table keyed by the full storage
    key. It is self-initialising: the table is created if needed.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._locks = KeyLocks()
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, key: str) -> Optional[bytes]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT value FROM documents WHERE key = ?", (key,))
            row = cur.fetchone()
            if not row:
                return None
            return bytes(row[0])

    def put(self, key: str, value: bytes) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO documents (key, value)
                VALUES (?, ?)
                ON CONFLICT (key)
                DO UPDATE SET value = excluded.value
                """,
                (key, sqlite3.Binary(value)),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM documents WHERE key = ?", (key,))
            conn.commit()

    def list_keys(self, prefix: str) -> List[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT key
                FROM documents
                WHERE substr(key, 1, ?) = ?
                ORDER BY key
                """,
                (len(prefix), prefix),
            )
            rows = cur.fetchall()
            return [str(row[0]) for row in rows]

    def lock(self, key: str) -> ContextManager[None]:
        return self._locks.hold(key)
