"""Tests for operator credential hashing."""

from whatsgate.infra.hashing import CredentialHasher


class TestCredentialHasher:
    def test_same_key_same_hash(self):
        hasher = CredentialHasher(key=b"k" * 32)
        assert hasher.hash("secret") == hasher.hash("secret")

    def test_per_process_key_differs(self):
        assert CredentialHasher().hash("secret") != CredentialHasher().hash("secret")

    def test_matches(self):
        hasher = CredentialHasher()
        stored = hasher.hash("secret")
        assert hasher.matches("secret", stored)
        assert not hasher.matches("Secret", stored)
        assert not hasher.matches("", stored)

    def test_no_stored_hash_fails_closed(self):
        assert not CredentialHasher().matches("anything", None)
