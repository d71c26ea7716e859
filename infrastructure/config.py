from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.credentials import DEFAULT_ITERATIONS

STORAGE_BACKENDS = ("file", "sqlite", "memory")


@dataclass(frozen=True)
class Settings:
    """
    Process-level configuration read from the environment.

    The maximum session age is deliberately not part of it.
    """

    data_dir: str = "data"
    storage_backend: str = "file"
    db_path: str = "chat.db"
    password_iterations: int = DEFAULT_ITERATIONS
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build `Settings` from `environ` (defaults to `os.environ` after
    loading a `.env` file, if present).

    Raises RuntimeError for values that cannot be used.
    """

    if environ is None:
        load_dotenv()
        environ = os.environ

    backend = environ.get("CHAT_STORAGE_BACKEND", "file").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise RuntimeError(
            f"CHAT_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {backend!r}."
        )

    raw_iterations = environ.get("CHAT_PASSWORD_ITERATIONS", str(DEFAULT_ITERATIONS))
    try:
        iterations = int(raw_iterations)
    except ValueError:
        raise RuntimeError("CHAT_PASSWORD_ITERATIONS must be an integer.") from None
    if iterations <= 0:
        raise RuntimeError("CHAT_PASSWORD_ITERATIONS must be positive.")

    log_level = environ.get("CHAT_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise RuntimeError(f"CHAT_LOG_LEVEL {log_level!r} is not a logging level.")

    return Settings(
        data_dir=environ.get("CHAT_DATA_DIR", "data"),
        storage_backend=backend,
        db_path=environ.get("CHAT_DB_PATH", "chat.db"),
        password_iterations=iterations,
        log_level=log_level,
    )
