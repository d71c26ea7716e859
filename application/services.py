from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from domain.credentials import CredentialEngine
from domain.errors import ChatError
from domain.models import Account, Channel, Guild
from domain.repositories import KeyValueStore

from .accounts import AccountRepository
from .guilds import GuildRepository
from .sessions import Clock, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """
    Generic result type for collaborator-facing operations.

    On failure `error_code` is the `code` of the typed error and
    `error_message` its human-readable text; `value` is None.
    """

    success: bool
    value: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


def _run(operation: Callable[[], Any]) -> OperationResult:
    try:
        return OperationResult(success=True, value=operation())
    except ChatError as exc:
        logger.debug("Operation failed: %s (%s)", exc.message, exc.code)
        return OperationResult(success=False, error_code=exc.code, error_message=exc.message)


def create_repositories(
    store: KeyValueStore,
    credentials: Optional[CredentialEngine] = None,
    clock: Clock = time.time,
) -> Tuple[AccountRepository, GuildRepository]:
    """Wire the session, account and guild repositories over one store."""

    sessions = SessionStore(store, clock=clock)
    accounts = AccountRepository(store, sessions, credentials)
    guilds = GuildRepository(store, accounts)
    return accounts, guilds


def create_account(
    username: str,
    password: str,
    display_name: str,
    accounts: AccountRepository,
) -> OperationResult:
    """Register an account. `value` is the new session ID."""

    return _run(lambda: accounts.create(username, password, display_name))


def login(username: str, password: str, accounts: AccountRepository) -> OperationResult:
    """Authenticate. `value` is a new session ID."""

    return _run(lambda: accounts.authenticate(username, password))


def logout(session_id: str, accounts: AccountRepository) -> OperationResult:
    return _run(lambda: accounts.logout(session_id))


def logout_everywhere(account: Account, accounts: AccountRepository) -> OperationResult:
    """End every session of `account`. `value` is the number revoked."""

    return _run(lambda: accounts.logout_everywhere(account))


def get_account_by_session(session_id: str, accounts: AccountRepository) -> OperationResult:
    """
    Resolve a session to its `Account`.

    The account carries credentials; interfaces should only ever send
    `account.to_public()` to clients.
    """

    return _run(lambda: accounts.resolve_by_session(session_id))


def get_public_account(username: str, accounts: AccountRepository) -> OperationResult:
    return _run(lambda: accounts.get_public_account(username))


def update_account(
    account: Account,
    accounts: AccountRepository,
    password: Optional[str] = None,
    display_name: Optional[str] = None,
) -> OperationResult:
    return _run(lambda: accounts.update(account, password=password, display_name=display_name))


def delete_account(account: Account, accounts: AccountRepository) -> OperationResult:
    return _run(lambda: accounts.delete(account))


def list_all_accounts(accounts: AccountRepository) -> OperationResult:
    """`value` is the sorted list of usernames."""

    return _run(accounts.list_all_usernames)


def create_guild(name: str, guilds: GuildRepository) -> OperationResult:
    return _run(lambda: guilds.create_guild(name))


def get_guild(guild_id: str, guilds: GuildRepository) -> OperationResult:
    return _run(lambda: guilds.load_guild(guild_id))


def update_guild(
    guild: Guild,
    guilds: GuildRepository,
    name: Optional[str] = None,
) -> OperationResult:
    return _run(lambda: guilds.update_guild(guild, name=name))


def create_channel(guild: Guild, name: str, guilds: GuildRepository) -> OperationResult:
    return _run(lambda: guilds.create_channel(guild, name))


def join_guild(
    account: Account,
    guild_id: str,
    accounts: AccountRepository,
    guilds: GuildRepository,
) -> OperationResult:
    """Record guild membership on the account, if the guild exists."""

    def operation() -> Account:
        guild = guilds.load_guild(guild_id)
        return accounts.join_guild(account, guild.id)

    return _run(operation)


def post_message(
    guild_id: str,
    channel_id: str,
    content: str,
    author: Account,
    guilds: GuildRepository,
) -> OperationResult:
    return _run(lambda: guilds.post_message(guild_id, channel_id, content, author))


def describe_channel(channel: Channel) -> List[str]:
    """Render a channel's messages as "Display Name: content" lines."""

    lines = []
    for message in channel.messages:
        author_name = message.author.display_name if message.author else message.author_username
        lines.append(f"{author_name}: {message.content}")
    return lines

