"""Outbound send and inbound buffer endpoints."""

from fastapi import APIRouter, Depends

from whatsgate.api.auth import can_read, can_send, enforce_send_limit, get_gateway
from whatsgate.api.schemas import SendMessageRequest
from whatsgate.gateway.session import SendRequest, SessionGateway
from whatsgate.gateway.tokens import Claims

router = APIRouter(prefix="/api", tags=["messages"])


@router.post("/enviar-mensaje", dependencies=[Depends(enforce_send_limit)])
async def send_message(
    body: SendMessageRequest,
    claims: Claims = Depends(can_send),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict:
    """Send a text message, or a file with the text as caption.

    Returns:
        429 when the per-minute send budget is spent, 503 while WhatsApp is
        not connected, 400 for bad destinations or attachments.
    """
    message_id = await gateway.send_message(
        SendRequest(
            destination=body.destino,
            body=body.mensaje,
            attachment_path=body.rutaArchivo or None,
            is_group=body.esGrupo,
        )
    )
    return {"exito": True, "idMensaje": message_id, "mensaje": "Mensaje enviado correctamente"}


@router.get("/mensajes-recibidos")
def inbound_messages(
    limpiar: bool = False,
    claims: Claims = Depends(can_read),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict:
    records = [record.to_dict() for record in gateway.inbound_messages(clear=limpiar)]
    if limpiar:
        return {
            "exito": True,
            "mensajesLimpiados": True,
            "mensajesEliminados": len(records),
            "mensajes": records,
        }
    return {"exito": True, "mensajes": records}
