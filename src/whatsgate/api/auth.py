"""Request authentication and per-request guards.

Tokens arrive as ``Authorization: Bearer <token>`` or, alternatively, as the
raw token in ``X-API-Key``.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from whatsgate.gateway.errors import AuthRequired
from whatsgate.gateway.rate_limit import SEND_POLICY
from whatsgate.gateway.session import SessionGateway
from whatsgate.gateway.tokens import Claims, Permission

API_KEY_HEADER = "X-API-Key"


def get_gateway(request: Request) -> SessionGateway:
    return request.app.state.gateway


def client_identity(request: Request) -> str:
    """Rate-limit identity: the peer address as seen by the server."""
    return request.client.host if request.client else "unknown"


def extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header:
        parts = auth_header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.headers.get(API_KEY_HEADER) or None


def require_permission(permission: Permission) -> Callable[..., Claims]:
    """Build a dependency that authorizes the caller for ``permission``."""

    def _dependency(request: Request, gateway: SessionGateway = Depends(get_gateway)) -> Claims:
        token = extract_token(request)
        if not token:
            raise AuthRequired(
                "Token de autenticación requerido",
                detalle="Incluye el token en el header Authorization: Bearer <token>",
            )
        return gateway.authorize(token, permission)

    return _dependency


def enforce_send_limit(request: Request, gateway: SessionGateway = Depends(get_gateway)) -> None:
    gateway.admit(SEND_POLICY, client_identity(request))


can_send = require_permission(Permission.SEND_MESSAGES)
can_read = require_permission(Permission.READ_MESSAGES)
