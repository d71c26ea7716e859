import json
import threading
import unittest

from application.sessions import MAX_SESSION_AGE_MS
from domain.errors import (
    AccountNotFound,
    AlreadyExists,
    IntegrityError,
    InvalidCredentials,
    InvalidDisplayName,
    InvalidSession,
    InvalidUsername,
    PolicyViolation,
    SessionExpired,
    SessionNotFound,
)
from domain.validation import DELETED_USERNAME

from fakes import make_backend


class AccountRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store, self.clock, self.accounts, _ = make_backend()

    def test_create_then_authenticate_then_resolve(self):
        self.accounts.create("alice", "secret1", "Alice")
        session_id = self.accounts.authenticate("alice", "secret1")
        account = self.accounts.resolve_by_session(session_id)
        self.assertEqual(account.username, "alice")
        self.assertEqual(account.display_name, "Alice")

    def test_create_returns_usable_session(self):
        session_id = self.accounts.create("alice", "secret1", "Alice")
        self.assertEqual(self.accounts.resolve_by_session(session_id).username, "alice")

    def test_stored_record_has_no_plaintext(self):
        self.accounts.create("alice", "secret1", "  Alice  ")
        data = json.loads(self.store.get("accounts/alice"))
        self.assertEqual(set(data), {"username", "displayName", "password", "guildIDs"})
        self.assertEqual(data["displayName"], "Alice")
        self.assertEqual(set(data["password"]), {"value", "salt", "iterations"})
        self.assertNotIn("secret1", json.dumps(data))

    def test_duplicate_username_keeps_first_record(self):
        self.accounts.create("alice", "secret1", "Alice")
        with self.assertRaises(AlreadyExists):
            self.accounts.create("alice", "other22", "Impostor")

        account = self.accounts.load_by_username("alice")
        self.assertEqual(account.display_name, "Alice")
        self.accounts.authenticate("alice", "secret1")

    def test_invalid_fields_write_nothing(self):
        with self.assertRaises(InvalidUsername):
            self.accounts.create("bad name", "secret1", "Bad")
        with self.assertRaises(InvalidUsername):
            self.accounts.create("   ", "secret1", "Blank")
        with self.assertRaises(InvalidDisplayName):
            self.accounts.create("bob", "secret1", "   ")
        with self.assertRaises(PolicyViolation):
            self.accounts.create("bob", "short", "Bob")
        self.assertEqual(self.store.list_keys(""), [])

    def test_reserved_username_cannot_be_registered_or_loaded(self):
        with self.assertRaises(InvalidUsername):
            self.accounts.create(DELETED_USERNAME, "secret1", "Sneaky")
        with self.assertRaises(AccountNotFound):
            self.accounts.load_by_username(DELETED_USERNAME)

    def test_load_validates_username_before_lookup(self):
        with self.assertRaises(InvalidUsername):
            self.accounts.load_by_username("../sessions/x")
        with self.assertRaises(AccountNotFound):
            self.accounts.load_by_username("nobody")

    def test_load_trims_username(self):
        self.accounts.create("alice", "secret1", "Alice")
        self.assertEqual(self.accounts.load_by_username("  alice ").username, "alice")

    def test_authentication_failures_are_indistinguishable(self):
        self.accounts.create("real_user", "secret1", "Real")

        with self.assertRaises(InvalidCredentials) as unknown:
            self.accounts.authenticate("ghost", "whatever1")
        with self.assertRaises(InvalidCredentials) as wrong:
            self.accounts.authenticate("real_user", "wrongpass1")
        with self.assertRaises(InvalidCredentials) as malformed:
            self.accounts.authenticate("not valid!", "whatever1")

        self.assertEqual(type(unknown.exception), type(wrong.exception))
        self.assertEqual(unknown.exception.message, wrong.exception.message)
        self.assertEqual(malformed.exception.message, wrong.exception.message)

    def test_authenticate_trims_password(self):
        self.accounts.create("alice", "secret1", "Alice")
        self.accounts.authenticate("alice", "  secret1 ")

    def test_session_of_deleted_account_is_revoked(self):
        session_id = self.accounts.create("alice", "secret1", "Alice")
        self.accounts.delete(self.accounts.load_by_username("alice"))

        with self.assertRaises(InvalidSession):
            self.accounts.resolve_by_session(session_id)
        with self.assertRaises(SessionNotFound):
            self.accounts.sessions.resolve(session_id)

    def test_expired_session_is_reported(self):
        session_id = self.accounts.create("alice", "secret1", "Alice")
        self.clock.advance(MAX_SESSION_AGE_MS / 1000 + 1)
        with self.assertRaises(SessionExpired):
            self.accounts.resolve_by_session(session_id)

    def test_unknown_or_malformed_session_is_invalid(self):
        with self.assertRaises(InvalidSession):
            self.accounts.resolve_by_session("00000000-0000-4000-8000-000000000000")
        with self.assertRaises(InvalidSession):
            self.accounts.resolve_by_session("nope")

    def test_update_display_name_only(self):
        self.accounts.create("alice", "secret1", "Alice")
        account = self.accounts.load_by_username("alice")
        old_password = account.password

        self.accounts.update(account, display_name="  Alice B ")
        stored = self.accounts.load_by_username("alice")
        self.assertEqual(stored.display_name, "Alice B")
        self.assertEqual(stored.password, old_password)

    def test_update_password(self):
        self.accounts.create("alice", "secret1", "Alice")
        account = self.accounts.load_by_username("alice")

        self.accounts.update(account, password="newpass2")
        self.accounts.authenticate("alice", "newpass2")
        with self.assertRaises(InvalidCredentials):
            self.accounts.authenticate("alice", "secret1")

    def test_failed_update_changes_nothing(self):
        self.accounts.create("alice", "secret1", "Alice")
        account = self.accounts.load_by_username("alice")

        with self.assertRaises(PolicyViolation):
            self.accounts.update(account, display_name="Renamed", password="bad")

        stored = self.accounts.load_by_username("alice")
        self.assertEqual(stored.display_name, "Alice")
        self.assertEqual(account.display_name, "Alice")
        self.accounts.authenticate("alice", "secret1")

    def test_update_of_deleted_account_fails(self):
        self.accounts.create("alice", "secret1", "Alice")
        account = self.accounts.load_by_username("alice")
        self.accounts.delete(account)
        with self.assertRaises(AccountNotFound):
            self.accounts.update(account, display_name="Ghost")
        self.assertEqual(self.accounts.list_all_usernames(), [])

    def test_concurrent_updates_keep_both_fields(self):
        self.accounts.create("alice", "secret1", "Alice")
        first = self.accounts.load_by_username("alice")
        second = self.accounts.load_by_username("alice")

        threads = [
            threading.Thread(target=self.accounts.update, args=(first,), kwargs={"display_name": "Renamed"}),
            threading.Thread(target=self.accounts.update, args=(second,), kwargs={"password": "changed9"}),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = self.accounts.load_by_username("alice")
        self.assertEqual(stored.display_name, "Renamed")
        self.accounts.authenticate("alice", "changed9")

    def test_delete_keeps_sessions_on_disk(self):
        session_id = self.accounts.create("alice", "secret1", "Alice")
        self.accounts.delete(self.accounts.load_by_username("alice"))
        self.assertIsNotNone(self.store.get(f"sessions/{session_id}"))

    def test_list_all_usernames(self):
        self.accounts.create("bob", "secret1", "Bob")
        self.accounts.create("alice", "secret1", "Alice")
        self.assertEqual(self.accounts.list_all_usernames(), ["alice", "bob"])

    def test_public_account_has_no_credentials(self):
        self.accounts.create("alice", "secret1", "Alice")
        public = self.accounts.get_public_account("alice")
        self.assertEqual(public.to_dict(), {"username": "alice", "displayName": "Alice"})

    def test_join_guild_is_idempotent(self):
        self.accounts.create("alice", "secret1", "Alice")
        account = self.accounts.load_by_username("alice")
        self.accounts.join_guild(account, "general")
        self.accounts.join_guild(account, "general")
        self.assertEqual(self.accounts.load_by_username("alice").guild_ids, ["general"])

    def test_corrupt_record_raises_integrity_error(self):
        self.store.put("accounts/alice", json.dumps({"username": "alice", "displayName": "A"}).encode())
        with self.assertRaises(IntegrityError):
            self.accounts.load_by_username("alice")

    def test_record_stored_under_wrong_key_is_integrity_error(self):
        alice_session = self.accounts.create("alice", "secret1", "Alice")
        self.accounts.create("bob", "secret2", "Bob")
        self.store.put("accounts/alice", self.store.get("accounts/bob"))

        with self.assertRaises(IntegrityError):
            self.accounts.resolve_by_session(alice_session)
        with self.assertRaises(IntegrityError):
            self.accounts.load_by_username("alice")
        self.assertEqual(self.accounts.load_by_username("bob").display_name, "Bob")

    def test_logout_everywhere_revokes_all_sessions(self):
        first = self.accounts.create("alice", "secret1", "Alice")
        second = self.accounts.authenticate("alice", "secret1")
        account = self.accounts.resolve_by_session(first)

        self.assertEqual(self.accounts.logout_everywhere(account), 2)
        for session_id in (first, second):
            with self.assertRaises(InvalidSession):
                self.accounts.resolve_by_session(session_id)

    def test_resolve_author_falls_back_to_placeholder(self):
        author = self.accounts.resolve_author("gone")
        self.assertTrue(author.is_placeholder)
        self.assertEqual(author.username, DELETED_USERNAME)


if __name__ == "__main__":
    unittest.main()
