"""Operator credential hashing.

The configured API password is hashed once at startup with a per-process
random key (HMAC-SHA256); candidates are hashed the same way and compared in
constant time. Neither the candidate nor the configured value is ever logged.
"""

import hashlib
import hmac
import secrets


class CredentialHasher:
    """Keyed hashing for the operator credential."""

    def __init__(self, key: bytes | None = None) -> None:
        self._key = key or secrets.token_bytes(32)

    def hash(self, credential: str) -> bytes:
        return hmac.new(self._key, credential.encode("utf-8"), hashlib.sha256).digest()

    def matches(self, candidate: str, stored_hash: bytes | None) -> bool:
        """Constant-time check of a candidate against a stored hash.

        Returns False when no credential is configured (fail closed).
        """
        if stored_hash is None:
            return False
        return hmac.compare_digest(self.hash(candidate), stored_hash)
