from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable, List

from domain.errors import (
    IntegrityError,
    InvalidSession,
    InvalidSessionFormat,
    SessionExpired,
    SessionNotFound,
)
from domain.models import SessionRecord
from domain.repositories import SESSIONS, KeyValueStore, make_key
from domain.validation import is_valid_session_id, validate_username

logger = logging.getLogger(__name__)

# Not configurable at runtime.
MAX_SESSION_AGE_MS = 1000 * 60 * 60 * 24

Clock = Callable[[], float]


def _short(session_id: str) -> str:
    """Loggable prefix of a token; the full value is a bearer secret."""

    return session_id[:8]


class SessionStore:
    """
    Opaque session tokens mapped to usernames.

    Expiry is enforced lazily: every `resolve` re-validates the stored
    record and deletes it if it is malformed or older than
    `MAX_SESSION_AGE_MS`. There is no background eviction; a stale
    record occupies storage until it is next looked up or
    `purge_expired` runs, but it is never honoured.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = time.time) -> None:
        self._store = store
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def issue(self, username: str) -> str:
        username = validate_username(username)

        while True:
            session_id = str(uuid.uuid4())
            key = make_key(SESSIONS, session_id)
            with self._store.lock(key):
                if self._store.get(key) is not None:
                    continue
                record = SessionRecord(id=session_id, username=username, created_at=self._now_ms())
                self._store.put(key, json.dumps(record.to_dict(), indent=4).encode("utf-8"))
                break

        logger.info("Issued session %s for %s", _short(session_id), username)
        return session_id

    def resolve(self, session_id: str) -> SessionRecord:
        """
        Return the live session for `session_id`.

        Raises InvalidSessionFormat before touching storage if the token
        has the wrong shape, SessionNotFound if there is no record,
        InvalidSession or SessionExpired (after deleting the record) if
        the record cannot be honoured.
        """

        if not is_valid_session_id(session_id):
            raise InvalidSessionFormat()

        key = make_key(SESSIONS, session_id)
        with self._store.lock(key):
            raw = self._store.get(key)
            if raw is None:
                raise SessionNotFound()

            try:
                record = SessionRecord.from_dict(json.loads(raw))
            except (ValueError, IntegrityError) as exc:
                self._store.delete(key)
                logger.warning("Deleted malformed session %s: %s", _short(session_id), exc)
                raise InvalidSession() from exc

            if record.id.lower() != session_id.lower():
                self._store.delete(key)
                logger.warning("Deleted session %s stored under a foreign id", _short(session_id))
                raise InvalidSession()

            if self._now_ms() - record.created_at > MAX_SESSION_AGE_MS:
                self._store.delete(key)
                logger.info("Session %s for %s expired", _short(session_id), record.username)
                raise SessionExpired()

            return record

    def revoke(self, session_id: str) -> None:
        """Delete a session. Absent or malformed ids are ignored."""

        if not is_valid_session_id(session_id):
            return
        self._store.delete(make_key(SESSIONS, session_id))
        logger.info("Revoked session %s", _short(session_id))

    def _session_ids(self) -> List[str]:
        prefix = make_key(SESSIONS, "")
        return [key[len(prefix):] for key in self._store.list_keys(prefix)]

    def revoke_all(self, username: str) -> int:
        """Delete every session belonging to `username`. Returns the count."""

        revoked = 0
        for session_id in self._session_ids():
            try:
                record = self.resolve(session_id)
            except (InvalidSession, SessionNotFound, InvalidSessionFormat):
                continue
            if record.username == username:
                self.revoke(session_id)
                revoked += 1
        return revoked

    def purge_expired(self) -> int:
        """
        Resolve every stored session once, which deletes the stale and
        malformed ones. Returns how many were removed.

        Not needed for correctness; only reclaims storage.
        """

        removed = 0
        for session_id in self._session_ids():
            try:
                self.resolve(session_id)
            except (InvalidSession, InvalidSessionFormat):
                if not is_valid_session_id(session_id):
                    # Unreachable through `resolve`, drop it directly.
                    self._store.delete(make_key(SESSIONS, session_id))
                removed += 1
            except SessionNotFound:
                continue
        if removed:
            logger.info("Purged %d stale sessions", removed)
        return removed
