import logging
import sys

from application.services import create_repositories
from domain.credentials import CredentialEngine
from domain.repositories import KeyValueStore
from infrastructure.config import Settings, load_settings
from infrastructure.db.kv_store_sqlite import SqliteKeyValueStore
from infrastructure.storage.file_store import FileKeyValueStore
from infrastructure.storage.memory_store import InMemoryKeyValueStore
from interfaces.cli.commands import run_cli


def build_store(settings: Settings) -> KeyValueStore:
    if settings.storage_backend == "sqlite":
        return SqliteKeyValueStore(settings.db_path)
    if settings.storage_backend == "memory":
        return InMemoryKeyValueStore()
    return FileKeyValueStore(settings.data_dir)


def main(argv=None) -> int:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = build_store(settings)
    accounts, guilds = create_repositories(
        store, CredentialEngine(iterations=settings.password_iterations)
    )
    return run_cli(accounts, guilds, argv)


if __name__ == "__main__":
    sys.exit(main())
