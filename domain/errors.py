from __future__ import annotations


class ChatError(Exception):
    """
    Base class for every failure the core reports to its callers.

    `code` is a stable, machine-readable identifier that the interface
    layer can forward without inspecting the exception type.
    """

    code = "error"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatError):
    code = "validation_error"
    default_message = "Invalid input"


class InvalidUsername(ValidationError):
    code = "invalid_username"
    default_message = "Invalid username"


class InvalidDisplayName(ValidationError):
    code = "invalid_display_name"
    default_message = "Invalid display name"


class InvalidName(ValidationError):
    code = "invalid_name"
    default_message = "Name must not contain special characters"


class InvalidID(ValidationError):
    code = "invalid_id"
    default_message = "ID must not contain special characters, spaces or uppercase characters"


class InvalidContent(ValidationError):
    code = "invalid_content"
    default_message = "Message content must not be empty"


class PolicyViolation(ValidationError):
    code = "password_policy"
    default_message = "Password does not meet the password policy"


class InvalidSessionFormat(ValidationError):
    code = "invalid_session_format"
    default_message = "Malformed session ID"


class AlreadyExists(ChatError):
    code = "already_exists"
    default_message = "Already exists"


class NotFound(ChatError):
    code = "not_found"
    default_message = "Not found"


class AccountNotFound(NotFound):
    default_message = "Account not found"


class GuildNotFound(NotFound):
    default_message = "Guild not found"


class ChannelNotFound(NotFound):
    default_message = "Channel not found"


class SessionNotFound(NotFound):
    default_message = "Session not found"


class InvalidSession(ChatError):
    code = "invalid_session"
    default_message = "Invalid session"


class SessionExpired(InvalidSession):
    code = "session_expired"
    default_message = "Session expired"


class InvalidCredentials(ChatError):
    """
    Raised for every authentication failure.

    The message is deliberately fixed so callers cannot tell an unknown
    username from a wrong password.
    """

    code = "invalid_credentials"
    default_message = "Invalid username or password"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class IntegrityError(ChatError):
    code = "integrity_error"
    default_message = "Stored record is corrupt"
