from __future__ import annotations

import argparse
import getpass
import sys
from typing import Callable, Dict, Optional

from application import services
from application.accounts import AccountRepository
from application.guilds import GuildRepository
from application.services import OperationResult


def _read_password(args: argparse.Namespace, prompt: str) -> str:
    if args.password:
        return args.password
    return getpass.getpass(prompt)


def _fail(result: OperationResult) -> int:
    print(f"Error: {result.error_message}", file=sys.stderr)
    return 1


def _account(session_id: str, accounts: AccountRepository):
    result = services.get_account_by_session(session_id, accounts)
    return result.value if result.success else None, result


def register_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    password = _read_password(args, f"Password for {args.username}: ")
    result = services.create_account(args.username, password, args.display_name, accounts)
    if not result.success:
        return _fail(result)
    print(result.value)
    return 0


def login_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    password = _read_password(args, f"Password for {args.username}: ")
    result = services.login(args.username, password, accounts)
    if not result.success:
        return _fail(result)
    print(result.value)
    return 0


def logout_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    services.logout(args.session, accounts)
    print("Logged out.")
    return 0


def logout_all_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)
    result = services.logout_everywhere(account, accounts)
    if not result.success:
        return _fail(result)
    print(f"Revoked {result.value} sessions of {account.username}.")
    return 0


def whoami_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)
    print(f"{account.username} ({account.display_name})")
    if account.guild_ids:
        print("Guilds: " + ", ".join(account.guild_ids))
    return 0


def accounts_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    result = services.list_all_accounts(accounts)
    if not result.success:
        return _fail(result)
    if not result.value:
        print("No accounts yet.")
        return 0
    for username in result.value:
        public = services.get_public_account(username, accounts)
        if public.success:
            print(f"{public.value.username:<24} {public.value.display_name}")
    return 0


def update_account_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)

    password = None
    if args.change_password or args.password:
        password = _read_password(args, "New password: ")
    result = services.update_account(
        account, accounts, password=password, display_name=args.display_name
    )
    if not result.success:
        return _fail(result)
    print(f"Updated {account.username}.")
    return 0


def delete_account_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)
    services.delete_account(account, accounts)
    services.logout(args.session, accounts)
    print(f"Deleted {account.username}.")
    return 0


def create_guild_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    result = services.create_guild(args.name, guilds)
    if not result.success:
        return _fail(result)
    print(result.value.id)
    return 0


def show_guild_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    result = services.get_guild(args.guild_id, guilds)
    if not result.success:
        return _fail(result)

    guild = result.value
    print(f"{guild.name} [{guild.id}]")
    for channel in guild.channels:
        print(f"  #{channel.id} ({channel.name})")
        for line in services.describe_channel(channel):
            print(f"    {line}")
    return 0


def rename_guild_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    loaded = services.get_guild(args.guild_id, guilds)
    if not loaded.success:
        return _fail(loaded)
    result = services.update_guild(loaded.value, guilds, name=args.name)
    if not result.success:
        return _fail(result)
    print(f"Renamed {result.value.id} to {result.value.name}.")
    return 0


def create_channel_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    loaded = services.get_guild(args.guild_id, guilds)
    if not loaded.success:
        return _fail(loaded)
    result = services.create_channel(loaded.value, args.name, guilds)
    if not result.success:
        return _fail(result)
    print(result.value.id)
    return 0


def join_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)
    result = services.join_guild(account, args.guild_id, accounts, guilds)
    if not result.success:
        return _fail(result)
    print(f"{account.username} joined {args.guild_id}.")
    return 0


def post_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    account, result = _account(args.session, accounts)
    if account is None:
        return _fail(result)
    result = services.post_message(args.guild_id, args.channel_id, args.content, account, guilds)
    if not result.success:
        return _fail(result)
    return 0


def purge_sessions_cmd(args, accounts: AccountRepository, guilds: GuildRepository) -> int:
    removed = accounts.sessions.purge_expired()
    print(f"Removed {removed} stale sessions.")
    return 0


Handler = Callable[[argparse.Namespace, AccountRepository, GuildRepository], int]

COMMANDS: Dict[str, Handler] = {
    "register": register_cmd,
    "login": login_cmd,
    "logout": logout_cmd,
    "logout-all": logout_all_cmd,
    "whoami": whoami_cmd,
    "accounts": accounts_cmd,
    "update-account": update_account_cmd,
    "delete-account": delete_account_cmd,
    "create-guild": create_guild_cmd,
    "show-guild": show_guild_cmd,
    "rename-guild": rename_guild_cmd,
    "create-channel": create_channel_cmd,
    "join": join_cmd,
    "post": post_cmd,
    "purge-sessions": purge_sessions_cmd,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guildchat",
        description="Manage chat accounts, sessions and guilds.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account and print a session ID")
    p.add_argument("username")
    p.add_argument("display_name")
    p.add_argument("--password", help="Password (prompted if omitted)")

    p = sub.add_parser("login", help="Print a new session ID")
    p.add_argument("username")
    p.add_argument("--password", help="Password (prompted if omitted)")

    for name, help_text in (
        ("logout", "Revoke a session"),
        ("logout-all", "Revoke every session of the account behind a session"),
        ("whoami", "Show the account behind a session"),
        ("delete-account", "Delete the account behind a session"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("session")

    sub.add_parser("accounts", help="List all accounts")

    p = sub.add_parser("update-account", help="Change display name and/or password")
    p.add_argument("session")
    p.add_argument("--display-name")
    p.add_argument("--change-password", action="store_true")
    p.add_argument("--password", help="New password; implies --change-password")

    p = sub.add_parser("create-guild", help="Create a guild and print its ID")
    p.add_argument("name")

    p = sub.add_parser("show-guild", help="Print a guild with its channels and messages")
    p.add_argument("guild_id")

    p = sub.add_parser("rename-guild", help="Rename a guild (its ID is kept)")
    p.add_argument("guild_id")
    p.add_argument("name")

    p = sub.add_parser("create-channel", help="Add a channel to a guild")
    p.add_argument("guild_id")
    p.add_argument("name")

    p = sub.add_parser("join", help="Join a guild")
    p.add_argument("session")
    p.add_argument("guild_id")

    p = sub.add_parser("post", help="Post a message to a channel")
    p.add_argument("session")
    p.add_argument("guild_id")
    p.add_argument("channel_id")
    p.add_argument("content")

    sub.add_parser("purge-sessions", help="Delete expired and malformed sessions")

    return parser


def run_cli(
    accounts: AccountRepository,
    guilds: GuildRepository,
    argv: Optional[list[str]] = None,
) -> int:
    args = create_parser().parse_args(argv)
    return COMMANDS[args.command](args, accounts, guilds)
