import unittest

from domain.credentials import CredentialEngine, PasswordCredential, check_policy
from domain.errors import PolicyViolation


class PasswordPolicyTests(unittest.TestCase):
    def test_trims_before_checking(self):
        self.assertEqual(check_policy("  secret1  "), "secret1")

    def test_rejects_short_password(self):
        with self.assertRaises(PolicyViolation) as ctx:
            check_policy("ab1")
        self.assertIn("at least 6", ctx.exception.message)

    def test_whitespace_does_not_count_towards_length(self):
        with self.assertRaises(PolicyViolation):
            check_policy("  ab12  ")

    def test_requires_letter_and_digit(self):
        with self.assertRaises(PolicyViolation):
            check_policy("12345678")
        with self.assertRaises(PolicyViolation):
            check_policy("abcdefgh")


class CredentialEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = CredentialEngine(iterations=1000)

    def test_derive_is_deterministic(self):
        salt = self.engine.new_salt()
        self.assertEqual(self.engine.derive("secret1", salt), self.engine.derive("secret1", salt))

    def test_different_salts_give_different_keys(self):
        salt1 = self.engine.new_salt()
        salt2 = self.engine.new_salt()
        self.assertNotEqual(salt1, salt2)
        self.assertNotEqual(self.engine.derive("secret1", salt1), self.engine.derive("secret1", salt2))

    def test_salt_length(self):
        self.assertEqual(len(self.engine.new_salt()), 16)

    def test_verify_only_accepts_exact_triple(self):
        salt = self.engine.new_salt()
        key = self.engine.derive("secret1", salt)
        self.assertTrue(self.engine.verify("secret1", salt, key))
        self.assertFalse(self.engine.verify("secret2", salt, key))
        self.assertFalse(self.engine.verify("secret1", self.engine.new_salt(), key))

    def test_credential_never_contains_plaintext(self):
        credential = self.engine.create_credential("  hunter22 ")
        self.assertNotIn("hunter22", credential.value)
        self.assertEqual(credential.iterations, 1000)
        self.assertTrue(self.engine.matches("hunter22", credential))
        self.assertTrue(self.engine.matches(" hunter22", credential))
        self.assertFalse(self.engine.matches("hunter23", credential))

    def test_credential_keeps_its_own_iteration_count(self):
        credential = self.engine.create_credential("secret1")
        stronger = CredentialEngine(iterations=2000)
        self.assertTrue(stronger.matches("secret1", credential))

    def test_policy_violation_is_raised_before_derivation(self):
        with self.assertRaises(PolicyViolation):
            self.engine.create_credential("short")

    def test_credential_dict_round_trip(self):
        credential = self.engine.create_credential("secret1")
        self.assertEqual(PasswordCredential.from_dict(credential.to_dict()), credential)

    def test_credential_without_salt_is_rejected(self):
        with self.assertRaises(KeyError):
            PasswordCredential.from_dict({"value": "ab"})


if __name__ == "__main__":
    unittest.main()
