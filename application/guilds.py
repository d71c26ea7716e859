from __future__ import annotations

import json
import logging
from typing import List, Optional

from domain.errors import AlreadyExists, ChannelNotFound, GuildNotFound, IntegrityError
from domain.models import Account, Channel, Guild, Message
from domain.repositories import GUILDS, KeyValueStore, make_key
from domain.validation import convert_name_to_id, validate_id, validate_name

from .accounts import AccountRepository

logger = logging.getLogger(__name__)


def create_message(channel: Channel, content: str, author: Account) -> Message:
    """
    Append a new message to `channel` and return it.

    The caller owns the guild and is responsible for saving it.
    """

    message = Message.create(content, author)
    channel.messages.append(message)
    return message


class GuildRepository:
    """
    Persistence for guilds and the channels and messages they own.

    A guild is stored as one document. Message authors are stored as
    usernames and resolved through the account repository when the
    guild is loaded.
    """

    def __init__(self, store: KeyValueStore, accounts: AccountRepository) -> None:
        self._store = store
        self._accounts = accounts

    @staticmethod
    def _key(guild_id: str) -> str:
        return make_key(GUILDS, guild_id)

    def _read(self, guild_id: str) -> Optional[Guild]:
        raw = self._store.get(self._key(guild_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise IntegrityError(f"Corrupt guild record for {guild_id}") from exc
        guild = Guild.from_dict(data, self._accounts.resolve_author)
        if guild.id != guild_id:
            raise IntegrityError(f"Guild record {guild_id} carries id {guild.id}")
        return guild

    def save(self, guild: Guild) -> None:
        payload = json.dumps(guild.to_dict(), indent=4).encode("utf-8")
        self._store.put(self._key(guild.id), payload)

    def create_guild(self, name: str) -> Guild:
        guild = Guild.create(name)
        with self._store.lock(self._key(guild.id)):
            if self._store.get(self._key(guild.id)) is not None:
                raise AlreadyExists("Guild already exists")
            self.save(guild)

        logger.info("Created guild %s", guild.id)
        return guild

    def load_guild(self, guild_id: str) -> Guild:
        guild_id = validate_id(guild_id)
        guild = self._read(guild_id)
        if guild is None:
            raise GuildNotFound()
        return guild

    def list_guild_ids(self) -> List[str]:
        prefix = make_key(GUILDS, "")
        return [key[len(prefix):] for key in self._store.list_keys(prefix)]

    def update_guild(self, guild: Guild, name: Optional[str] = None) -> Guild:
        """
        Rename a guild.

        The id is fixed at creation and is not derived again from the
        new name.
        """

        if name is not None:
            guild.rename(name)
        with self._store.lock(self._key(guild.id)):
            current = self._read(guild.id)
            if current is None:
                raise GuildNotFound()
            current.name = guild.name
            self.save(current)

        logger.info("Updated guild %s", guild.id)
        return guild

    def delete_guild(self, guild: Guild) -> None:
        with self._store.lock(self._key(guild.id)):
            self._store.delete(self._key(guild.id))
        logger.info("Deleted guild %s", guild.id)

    def create_channel(self, guild: Guild, name: str) -> Channel:
        """Add a channel to `guild` and save the guild."""

        new_name = validate_name(name, "Channel")
        channel_id = validate_id(convert_name_to_id(new_name))

        with self._store.lock(self._key(guild.id)):
            current = self._read(guild.id)
            if current is None:
                raise GuildNotFound()
            if current.get_channel(channel_id) is not None:
                raise AlreadyExists("Channel already exists")
            channel = Channel(id=channel_id, name=new_name)
            current.channels.append(channel)
            self.save(current)

        guild.channels = current.channels
        logger.info("Created channel %s in guild %s", channel.id, guild.id)
        return channel

    def rename_channel(self, guild: Guild, channel_id: str, name: str) -> Channel:
        new_name = validate_name(name, "Channel")
        with self._store.lock(self._key(guild.id)):
            current = self._read(guild.id)
            if current is None:
                raise GuildNotFound()
            channel = current.get_channel(channel_id)
            if channel is None:
                raise ChannelNotFound()
            channel.name = new_name
            self.save(current)

        guild.channels = current.channels
        return channel

    def post_message(
        self,
        guild_id: str,
        channel_id: str,
        content: str,
        author: Account,
    ) -> Message:
        """Append a message to a stored channel and save its guild."""

        guild_id = validate_id(guild_id)
        with self._store.lock(self._key(guild_id)):
            guild = self._read(guild_id)
            if guild is None:
                raise GuildNotFound()
            channel = guild.get_channel(channel_id)
            if channel is None:
                raise ChannelNotFound()
            message = create_message(channel, content, author)
            self.save(guild)

        logger.debug("%s posted to %s/%s", author.username, guild_id, channel_id)
        return message
