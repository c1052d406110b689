"""Tests for password hashing through passlib."""

from __future__ import annotations

import unittest

from accessdemo import database


class PasswordHashingTests(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = database._hash_password("supersecurepassword")

        self.assertTrue(hashed.startswith("$pbkdf2-sha256$"))
        self.assertNotIn("supersecurepassword", hashed)
        self.assertTrue(database._verify_password("supersecurepassword", hashed))
        self.assertFalse(database._verify_password("wrong", hashed))

    def test_hashes_are_salted(self) -> None:
        first = database._hash_password("same-password")
        second = database._hash_password("same-password")

        self.assertNotEqual(first, second)

    def test_malformed_hash_is_rejected(self) -> None:
        self.assertFalse(database._verify_password("anything", "not-a-hash"))


if __name__ == "__main__":
    unittest.main()
