from __future__ import annotations

import json
import logging
from typing import List, Optional

from domain.credentials import CredentialEngine, check_policy
from domain.errors import (
    AccountNotFound,
    AlreadyExists,
    IntegrityError,
    InvalidCredentials,
    InvalidSession,
    InvalidSessionFormat,
    InvalidUsername,
    SessionNotFound,
)
from domain.models import Account, PublicAccount
from domain.repositories import ACCOUNTS, KeyValueStore, make_key
from domain.validation import (
    DELETED_USERNAME,
    is_valid_username,
    validate_display_name,
    validate_id,
    validate_username,
)

from .sessions import SessionStore

logger = logging.getLogger(__name__)


class AccountRepository:
    """
    Create, load, update and delete account records.

    Owns the credential engine and uses the session store only at the
    registration, login and session-resolution boundaries. Every read
    goes back to the store; nothing is cached between calls.
    """

    def __init__(
        self,
        store: KeyValueStore,
        sessions: SessionStore,
        credentials: Optional[CredentialEngine] = None,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self._credentials = credentials or CredentialEngine()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @staticmethod
    def _key(username: str) -> str:
        return make_key(ACCOUNTS, username)

    def _read(self, username: str) -> Optional[Account]:
        raw = self._store.get(self._key(username))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise IntegrityError(f"Corrupt account record for {username}") from exc
        account = Account.from_dict(data)
        if account.username != username:
            raise IntegrityError(f"Account record {username} carries username {account.username}")
        return account

    def _write(self, account: Account) -> None:
        payload = json.dumps(account.to_dict(), indent=4).encode("utf-8")
        self._store.put(self._key(account.username), payload)

    def create(self, username: str, password: str, display_name: str) -> str:
        """
        Register a new account and return a session ID for it.

        All fields are validated before anything is written.
        """

        username = validate_username(username)
        if username == DELETED_USERNAME:
            raise InvalidUsername("This username is reserved")
        display_name = validate_display_name(display_name)
        check_policy(password)

        with self._store.lock(self._key(username)):
            if self._store.get(self._key(username)) is not None:
                raise AlreadyExists("Account already exists")

            account = Account(
                username=username,
                display_name=display_name,
                password=self._credentials.create_credential(password),
            )
            self._write(account)

        logger.info("Created account %s", username)
        return self._sessions.issue(username)

    def find_by_username(self, username: str) -> Optional[Account]:
        """Like `load_by_username` but returns None for unknown accounts."""

        username = validate_username(username)
        if username == DELETED_USERNAME:
            return None
        return self._read(username)

    def load_by_username(self, username: str) -> Account:
        account = self.find_by_username(username)
        if account is None:
            raise AccountNotFound()
        return account

    def resolve_author(self, username: str) -> Account:
        """
        Resolve a message author back-reference.

        Authors whose account is gone (or whose stored name is no longer
        a valid username) become the deleted-user placeholder.
        """

        account = None
        if is_valid_username(username):
            account = self.find_by_username(username)
        if account is None:
            logger.warning("Message author %r no longer exists", username)
            return Account.deleted_placeholder()
        return account

    def get_public_account(self, username: str) -> PublicAccount:
        return self.load_by_username(username).to_public()

    def authenticate(self, username: str, password: str) -> str:
        """
        Check a username/password pair and issue a session.

        Every failure raises the same InvalidCredentials error.
        """

        account = None
        if is_valid_username(username):
            account = self.find_by_username(username)

        if account is None or account.password is None:
            self._credentials.burn(password)
            logger.info("Failed login for unknown account")
            raise InvalidCredentials()

        if not self._credentials.matches(password, account.password):
            logger.info("Failed login for %s", account.username)
            raise InvalidCredentials()

        return self._sessions.issue(account.username)

    def resolve_by_session(self, session_id: str) -> Account:
        """
        Return the account behind `session_id`.

        A session whose account has been deleted is revoked here.
        """

        try:
            record = self._sessions.resolve(session_id)
        except (SessionNotFound, InvalidSessionFormat) as exc:
            raise InvalidSession() from exc

        account = self.find_by_username(record.username)
        if account is None:
            self._sessions.revoke(session_id)
            logger.info("Revoked session of deleted account %s", record.username)
            raise InvalidSession()
        return account

    def logout(self, session_id: str) -> None:
        self._sessions.revoke(session_id)

    def logout_everywhere(self, account: Account) -> int:
        """Revoke every session of `account`. Returns how many were removed."""

        revoked = self._sessions.revoke_all(account.username)
        logger.info("Revoked %d sessions of %s", revoked, account.username)
        return revoked

    def update(
        self,
        account: Account,
        password: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Account:
        """
        Change the password and/or display name of `account`.

        Only the given fields are applied. Every field is validated in
        memory before the record is touched, and the stored record is
        re-read under the account's lock so a concurrent update of the
        other field is not lost.
        """

        new_display_name = None
        if display_name is not None:
            new_display_name = validate_display_name(display_name)
        new_credential = None
        if password is not None:
            new_credential = self._credentials.create_credential(password)

        with self._store.lock(self._key(account.username)):
            current = self._read(account.username)
            if current is None:
                raise AccountNotFound()
            if new_display_name is not None:
                current.display_name = new_display_name
            if new_credential is not None:
                current.password = new_credential
            self._write(current)

        account.display_name = current.display_name
        account.password = current.password
        account.guild_ids = list(current.guild_ids)
        logger.info("Updated account %s", account.username)
        return account

    def join_guild(self, account: Account, guild_id: str) -> Account:
        """Record membership of `guild_id` on the account. Idempotent."""

        guild_id = validate_id(guild_id)
        with self._store.lock(self._key(account.username)):
            current = self._read(account.username)
            if current is None:
                raise AccountNotFound()
            if guild_id not in current.guild_ids:
                current.guild_ids.append(guild_id)
                self._write(current)

        account.guild_ids = list(current.guild_ids)
        return account

    def delete(self, account: Account) -> None:
        """
        Remove the account record.

        Sessions and authored messages are left alone: sessions are
        pruned when next resolved, messages fall back to the deleted-user
        placeholder.
        """

        with self._store.lock(self._key(account.username)):
            self._store.delete(self._key(account.username))
        logger.info("Deleted account %s", account.username)

    def list_all_usernames(self) -> List[str]:
        prefix = make_key(ACCOUNTS, "")
        return [key[len(prefix):] for key in self._store.list_keys(prefix)]
