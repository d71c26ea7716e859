from __future__ import annotations

from application.services import create_repositories
from domain.credentials import CredentialEngine
from infrastructure.storage.memory_store import InMemoryKeyValueStore

# Keep key derivation cheap in tests; the algorithm is the same.
TEST_ITERATIONS = 1000

START_TIME = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_backend(store=None, clock=None):
    """Return (store, clock, accounts, guilds) wired over an in-memory store."""

    store = store if store is not None else InMemoryKeyValueStore()
    clock = clock or FakeClock()
    accounts, guilds = create_repositories(
        store,
        CredentialEngine(iterations=TEST_ITERATIONS),
        clock=clock,
    )
    return store, clock, accounts, guilds
