"""Bearer token issuance and verification (HS256 JWT).

Tokens carry a subject and a permission set and expire 24 hours after
issuance. There is no revocation list: rotating JWT_SECRET invalidates every
outstanding token at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import jwt

from whatsgate.infra.hashing import CredentialHasher
from whatsgate.infra.time import Clock, wall_clock

TOKEN_TTL_SECONDS = 24 * 60 * 60
TOKEN_TTL_LABEL = "24 horas"

_ALGORITHM = "HS256"


class Permission(str, Enum):
    SEND_MESSAGES = "send_messages"
    READ_MESSAGES = "read_messages"


@dataclass(frozen=True)
class Claims:
    subject: str
    permissions: frozenset[Permission]
    issued_at: int
    expires_at: int

    def allows(self, permission: Permission) -> bool:
        return permission in self.permissions


class TokenService:
    """Issues and verifies access tokens.

    Args:
        secret: HMAC signing secret.
        credential: Configured operator credential, or None to reject all logins.
        clock: Epoch-seconds clock used at issuance.
    """

    def __init__(
        self,
        secret: str,
        credential: str | None = None,
        clock: Clock = wall_clock,
        hasher: CredentialHasher | None = None,
    ) -> None:
        self._secret = secret
        self._clock = clock
        self._hasher = hasher or CredentialHasher()
        self._credential_hash = self._hasher.hash(credential) if credential else None

    def issue(self, subject: str, permissions: Iterable[Permission]) -> str:
        issued_at = int(self._clock())
        payload = {
            "sub": subject,
            "permissions": sorted(Permission(p).value for p in permissions),
            "iat": issued_at,
            "exp": issued_at + TOKEN_TTL_SECONDS,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Claims | None:
        """Return the token's claims, or None if it is malformed, forged or expired."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.InvalidTokenError:
            return None

        try:
            permissions = frozenset(Permission(p) for p in payload.get("permissions", []))
        except (TypeError, ValueError):
            return None

        return Claims(
            subject=str(payload["sub"]),
            permissions=permissions,
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )

    def check_credential(self, candidate: str) -> bool:
        return self._hasher.matches(candidate, self._credential_hash)
