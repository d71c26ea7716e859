from __future__ import annotations

import re

from .errors import InvalidDisplayName, InvalidID, InvalidName, InvalidUsername

USERNAME_REGEX = re.compile(r"^[A-Za-z0-9_-]+$")
NAME_REGEX = re.compile(r"^[A-Za-z0-9_ -]+$")
ID_REGEX = re.compile(r"^[a-z0-9_-]+$")
SESSION_ID_REGEX = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)

# Reserved for authors whose account no longer exists. It matches the
# username shape so that it can sit in a message's author field, but it
# can never be registered or loaded as a live account.
DELETED_USERNAME = "deleted_user"
DELETED_DISPLAY_NAME = "Deleted User"


def is_valid_username(username: object) -> bool:
    return (
        isinstance(username, str)
        and username.strip() != ""
        and USERNAME_REGEX.fullmatch(username.strip()) is not None
    )


def validate_username(username: str) -> str:
    """Return the trimmed username or raise `InvalidUsername`."""

    if not is_valid_username(username):
        raise InvalidUsername()
    return username.strip()


def validate_display_name(display_name: str) -> str:
    if not isinstance(display_name, str) or display_name.strip() == "":
        raise InvalidDisplayName()
    return display_name.strip()


def validate_name(name: str, kind: str = "Name") -> str:
    """
    Validate a guild or channel display name.

    Returns the trimmed name. `kind` only changes the error message.
    """

    new_name = name.strip() if isinstance(name, str) else ""
    if new_name == "" or not NAME_REGEX.fullmatch(new_name):
        raise InvalidName(f"{kind} name must not contain special characters")
    return new_name


def validate_id(entity_id: str) -> str:
    new_id = entity_id.strip() if isinstance(entity_id, str) else ""
    if new_id == "" or not ID_REGEX.fullmatch(new_id):
        raise InvalidID()
    return new_id


def is_valid_session_id(session_id: object) -> bool:
    return isinstance(session_id, str) and SESSION_ID_REGEX.fullmatch(session_id) is not None


def convert_name_to_id(name: str) -> str:
    """
    Derive a slug from a display name.

    "My Cool Guild " -> "my-cool-guild". Applying it to its own output
    returns the same string.
    """

    return re.sub(r"\s+", "-", name.strip().lower())
