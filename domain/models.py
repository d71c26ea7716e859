from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .credentials import PasswordCredential
from .errors import InvalidContent, IntegrityError, InvalidUsername, ValidationError
from .validation import (
    DELETED_DISPLAY_NAME,
    DELETED_USERNAME,
    convert_name_to_id,
    is_valid_session_id,
    is_valid_username,
    validate_display_name,
    validate_id,
    validate_name,
    validate_username,
)


@dataclass
class PublicAccount:
    """The part of an account that may be shown to other users."""

    username: str
    display_name: str

    def to_dict(self) -> dict:
        return {"username": self.username, "displayName": self.display_name}


@dataclass
class Account:
    """
    A registered chat user.

    `password` is None only for the deleted-user placeholder, which is
    never persisted. `guild_ids` holds identifiers of joined guilds, not
    guild objects.
    """

    username: str
    display_name: str
    password: Optional[PasswordCredential]
    guild_ids: List[str] = field(default_factory=list)

    @classmethod
    def deleted_placeholder(cls) -> "Account":
        return cls(username=DELETED_USERNAME, display_name=DELETED_DISPLAY_NAME, password=None)

    @property
    def is_placeholder(self) -> bool:
        return self.username == DELETED_USERNAME and self.password is None

    def to_public(self) -> PublicAccount:
        return PublicAccount(username=self.username, display_name=self.display_name)

    def to_dict(self) -> dict:
        if self.password is None:
            raise ValueError("cannot serialize an account without credentials")
        return {
            "username": self.username,
            "displayName": self.display_name,
            "password": self.password.to_dict(),
            "guildIDs": list(self.guild_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        try:
            guild_ids = data.get("guildIDs", [])
            if not isinstance(guild_ids, list) or not all(isinstance(g, str) for g in guild_ids):
                raise ValueError("guildIDs must be a list of strings")
            return cls(
                username=validate_username(data["username"]),
                display_name=validate_display_name(data["displayName"]),
                password=PasswordCredential.from_dict(data["password"]),
                guild_ids=guild_ids,
            )
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            raise IntegrityError(f"Corrupt account record: {exc}") from exc


@dataclass(frozen=True)
class SessionRecord:
    """A login session. `created_at` is milliseconds since the epoch."""

    id: str
    username: str
    created_at: int

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        if not isinstance(data, dict):
            raise IntegrityError("Session record is not an object")

        username = data.get("username")
        if not is_valid_username(username):
            raise IntegrityError("Session record has no valid username")

        created_at = data.get("createdAt")
        # bool is an int subclass; a flag is not a timestamp.
        if isinstance(created_at, bool) or not isinstance(created_at, int) or created_at <= 0:
            raise IntegrityError("Session record has no valid creation time")

        session_id = data.get("id")
        if not is_valid_session_id(session_id):
            raise IntegrityError("Session record has no valid id")

        return cls(id=session_id, username=username.strip(), created_at=created_at)


class _FixedID:
    """Rejects reassignment of `id` once the instance has one."""

    def __setattr__(self, key, value):
        if key == "id" and "id" in self.__dict__:
            raise AttributeError(f"{type(self).__name__} id is immutable")
        super().__setattr__(key, value)


AuthorResolver = Callable[[str], Account]


@dataclass(frozen=True)
class Message:
    """
    A chat message.

    `author_username` is the persisted back-reference. `author` is the
    account it resolved to when the message was loaded or created and is
    never written to disk.
    """

    content: str
    author_username: str
    author: Optional[Account] = field(default=None, compare=False, repr=False)

    @classmethod
    def create(cls, content: str, author: Account) -> "Message":
        if not isinstance(content, str) or content.strip() == "":
            raise InvalidContent()
        if author.is_placeholder:
            raise InvalidUsername("A deleted user cannot author messages")
        return cls(content=content, author_username=author.username, author=author)

    def to_dict(self) -> dict:
        return {"content": self.content, "author": self.author_username}

    @classmethod
    def from_dict(cls, data: dict, resolve_author: AuthorResolver) -> "Message":
        content = data.get("content") if isinstance(data, dict) else None
        author_username = data.get("author") if isinstance(data, dict) else None
        if not isinstance(content, str) or not isinstance(author_username, str):
            raise IntegrityError("Corrupt message record")
        return cls(
            content=content,
            author_username=author_username,
            author=resolve_author(author_username),
        )


@dataclass
class Channel(_FixedID):
    id: str
    name: str
    messages: List[Message] = field(default_factory=list)

    @classmethod
    def create(cls, name: str) -> "Channel":
        new_name = validate_name(name, "Channel")
        return cls(id=validate_id(convert_name_to_id(new_name)), name=new_name)

    def rename(self, name: str) -> None:
        self.name = validate_name(name, "Channel")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict, resolve_author: AuthorResolver) -> "Channel":
        try:
            name = validate_name(data["name"], "Channel")
            # Older channel records were written without an id.
            channel_id = validate_id(data.get("id") or convert_name_to_id(name))
            messages = data.get("messages") or []
            if not isinstance(messages, list):
                raise ValueError("messages must be a list")
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            raise IntegrityError(f"Corrupt channel record: {exc}") from exc

        return cls(
            id=channel_id,
            name=name,
            messages=[Message.from_dict(m, resolve_author) for m in messages],
        )


@dataclass
class Guild(_FixedID):
    id: str
    name: str
    channels: List[Channel] = field(default_factory=list)

    @classmethod
    def create(cls, name: str) -> "Guild":
        new_name = validate_name(name, "Guild")
        return cls(id=validate_id(convert_name_to_id(new_name)), name=new_name)

    def rename(self, name: str) -> None:
        self.name = validate_name(name, "Guild")

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "channels": [c.to_dict() for c in self.channels],
        }

    @classmethod
    def from_dict(cls, data: dict, resolve_author: AuthorResolver) -> "Guild":
        try:
            name = validate_name(data["name"], "Guild")
            guild_id = validate_id(data["id"])
            channels = data.get("channels") or []
            if not isinstance(channels, list):
                raise ValueError("channels must be a list")
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            raise IntegrityError(f"Corrupt guild record: {exc}") from exc

        return cls(
            id=guild_id,
            name=name,
            channels=[Channel.from_dict(c, resolve_author) for c in channels],
        )
