"""Operator login: exchange the API password for a bearer token."""

from fastapi import APIRouter, Depends

from whatsgate.api.auth import get_gateway
from whatsgate.api.schemas import AuthRequest
from whatsgate.gateway.session import SessionGateway
from whatsgate.gateway.tokens import TOKEN_TTL_LABEL

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/auth")
def authenticate(body: AuthRequest, gateway: SessionGateway = Depends(get_gateway)) -> dict:
    """Return a 24h token scoped to send_messages and read_messages.

    Returns:
        401 auth_invalid if the password does not match.
    """
    token = gateway.authenticate(body.contrasena)
    return {
        "exito": True,
        "token": token,
        "expira": TOKEN_TTL_LABEL,
        "mensaje": "Autenticación exitosa",
    }
