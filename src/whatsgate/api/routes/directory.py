"""Groups, contacts and number registration lookups."""

from fastapi import APIRouter, Depends, Path

from whatsgate.api.auth import can_read, get_gateway
from whatsgate.domain.sanitize import clean_string
from whatsgate.gateway.session import SessionGateway
from whatsgate.gateway.tokens import Claims

router = APIRouter(prefix="/api", tags=["directory"])


@router.get("/grupos")
async def list_groups(
    claims: Claims = Depends(can_read),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict:
    groups = await gateway.list_groups()
    return {
        "exito": True,
        "grupos": [
            {"id": g.id, "nombre": g.name, "participantes": len(g.participants)} for g in groups
        ],
    }


@router.get("/contactos")
async def list_contacts(
    claims: Claims = Depends(can_read),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict:
    contacts = await gateway.list_contacts()
    return {
        "exito": True,
        "contactos": [
            {"id": c.id, "nombre": c.name or c.pushname or "", "numero": c.number}
            for c in contacts
        ],
    }


@router.get("/verificar-numero/{numero}")
async def verify_number(
    numero: str = Path(min_length=7, max_length=20),
    claims: Claims = Depends(can_read),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict:
    numero = clean_string(numero)
    exists = await gateway.verify_number(numero)
    return {"exito": True, "existe": exists, "numero": numero}
