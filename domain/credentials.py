from __future__ import annotations

import hashlib
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from .errors import PolicyViolation

HASH_NAME = "sha512"
DEFAULT_ITERATIONS = 210_000
SALT_BYTES = 16
KEY_BYTES = 64
MIN_PASSWORD_LENGTH = 6

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"[0-9]")


@dataclass(frozen=True)
class PasswordCredential:
    """
    Derived key and salt stored in place of a plaintext password.

    Both values are hex-encoded so the record can be written as JSON.
    `iterations` is kept with the record so that a later change of the
    work factor does not invalidate existing accounts.
    """

    value: str
    salt: str
    iterations: int = DEFAULT_ITERATIONS

    def to_dict(self) -> dict:
        return {"value": self.value, "salt": self.salt, "iterations": self.iterations}

    @classmethod
    def from_dict(cls, data: dict) -> "PasswordCredential":
        value = data["value"]
        salt = data["salt"]
        iterations = data.get("iterations", DEFAULT_ITERATIONS)
        if not isinstance(value, str) or not isinstance(salt, str) or not value or not salt:
            raise ValueError("password value and salt must be non-empty strings")
        if not isinstance(iterations, int) or isinstance(iterations, bool) or iterations <= 0:
            raise ValueError("password iterations must be a positive integer")
        # Both must decode as hex.
        bytes.fromhex(value)
        bytes.fromhex(salt)
        return cls(value=value, salt=salt, iterations=iterations)


def check_policy(password: str) -> str:
    """
    Enforce the password policy and return the trimmed password.

    Leading and trailing whitespace is removed before any check so that
    " secret1" and "secret1" are the same credential.
    """

    if not isinstance(password, str):
        raise PolicyViolation("Password must be a string")

    trimmed = password.strip()
    if len(trimmed) < MIN_PASSWORD_LENGTH:
        raise PolicyViolation(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if not _LETTER.search(trimmed):
        raise PolicyViolation("Password must contain at least one letter")
    if not _DIGIT.search(trimmed):
        raise PolicyViolation("Password must contain at least one digit")
    return trimmed


class CredentialEngine:
    """Salted PBKDF2 key derivation and constant-time verification."""

    def __init__(self, iterations: int = DEFAULT_ITERATIONS) -> None:
        if iterations <= 0:
            raise ValueError("iterations must be positive")
        self._iterations = iterations

    @property
    def iterations(self) -> int:
        return self._iterations

    @staticmethod
    def new_salt() -> bytes:
        return secrets.token_bytes(SALT_BYTES)

    def derive(self, password: str, salt: bytes, iterations: Optional[int] = None) -> bytes:
        return hashlib.pbkdf2_hmac(
            HASH_NAME,
            password.encode("utf-8"),
            salt,
            iterations or self._iterations,
            dklen=KEY_BYTES,
        )

    def create_credential(self, password: str) -> PasswordCredential:
        """Validate `password` against the policy and derive a new credential."""

        trimmed = check_policy(password)
        salt = self.new_salt()
        key = self.derive(trimmed, salt)
        return PasswordCredential(
            value=key.hex(),
            salt=salt.hex(),
            iterations=self._iterations,
        )

    def verify(
        self,
        candidate: str,
        salt: bytes,
        expected_key: bytes,
        iterations: Optional[int] = None,
    ) -> bool:
        if not isinstance(candidate, str):
            return False
        computed = self.derive(candidate.strip(), salt, iterations)
        return secrets.compare_digest(computed, expected_key)

    def matches(self, candidate: str, credential: PasswordCredential) -> bool:
        return self.verify(
            candidate,
            bytes.fromhex(credential.salt),
            bytes.fromhex(credential.value),
            credential.iterations,
        )

    def burn(self, candidate: str) -> None:
        """
        Run one derivation whose result is discarded.

        Used when the account does not exist so the response takes as long
        as a real password check.
        """

        self.derive(candidate if isinstance(candidate, str) else "", self.new_salt())
