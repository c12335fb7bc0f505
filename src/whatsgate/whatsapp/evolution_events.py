"""Evolution API webhook payloads -> client events.

Evolution speaks Baileys JIDs (``@s.whatsapp.net``); the gateway addresses
contacts as ``@c.us``. Conversion happens here and in EvolutionClient.
"""

from typing import Any

from .models import (
    AuthFailure,
    ClientEvent,
    Disconnected,
    LoadingProgress,
    MessageReceived,
    PairingCodeReady,
    RawMessage,
    Ready,
)

EVOLUTION_CONTACT_SUFFIX = "@s.whatsapp.net"
CONTACT_SUFFIX = "@c.us"

# Connection closed with this status means the device was unlinked.
_LOGGED_OUT_STATUS = 401


class InvalidPayloadError(Exception):
    """Raised when an Evolution payload has an invalid shape."""


def from_evolution_jid(jid: str) -> str:
    if jid.endswith(EVOLUTION_CONTACT_SUFFIX):
        return jid[: -len(EVOLUTION_CONTACT_SUFFIX)] + CONTACT_SUFFIX
    return jid


def to_evolution_jid(chat_id: str) -> str:
    if chat_id.endswith(CONTACT_SUFFIX):
        return chat_id[: -len(CONTACT_SUFFIX)] + EVOLUTION_CONTACT_SUFFIX
    return chat_id


def _event_name(payload: dict[str, Any]) -> str:
    # Evolution emits "messages.upsert" or "MESSAGES_UPSERT" depending on config
    return str(payload.get("event", "")).lower().replace("_", ".")


def _as_dict(value: Any, name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidPayloadError(f"{name} must be an object")
    return value


def _as_text(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidPayloadError(f"{name} must be a string")
    return value


def _extract_text(message: dict[str, Any]) -> str:
    if "conversation" in message:
        return _as_text(message["conversation"], "conversation")
    if "extendedTextMessage" in message:
        extended = _as_dict(message["extendedTextMessage"], "extendedTextMessage")
        return _as_text(extended.get("text"), "extendedTextMessage.text")
    for kind in ("imageMessage", "videoMessage", "documentMessage"):
        if kind in message:
            return _as_text(_as_dict(message[kind], kind).get("caption"), f"{kind}.caption")
    return ""


def _message_event(data: dict[str, Any]) -> list[ClientEvent]:
    key = _as_dict(data.get("key", {}), "key")
    if key.get("fromMe"):
        return []

    message_id = key.get("id")
    if not message_id or not isinstance(message_id, str):
        raise InvalidPayloadError("missing or invalid message id")

    remote_jid = key.get("remoteJid", "")
    if not remote_jid or not isinstance(remote_jid, str):
        raise InvalidPayloadError("missing remoteJid")

    participant = key.get("participant") or data.get("participant")
    if participant is not None and not isinstance(participant, str):
        raise InvalidPayloadError("invalid participant")
    raw = RawMessage(
        from_id=from_evolution_jid(remote_jid),
        body=_extract_text(_as_dict(data.get("message") or {}, "message")),
        message_id=message_id,
        author=from_evolution_jid(participant) if participant else None,
        push_name=_as_text(data.get("pushName"), "pushName") or None,
    )
    return [MessageReceived(raw)]


def _connection_event(data: dict[str, Any]) -> list[ClientEvent]:
    state = data.get("state")
    if state == "open":
        return [Ready()]
    if state == "connecting":
        return [LoadingProgress(percent=0, message="connecting")]
    if state == "close":
        status = data.get("statusReason")
        if status == _LOGGED_OUT_STATUS:
            return [AuthFailure(reason="logged out")]
        return [Disconnected(reason=str(status or "closed"))]
    return []


def _qrcode_event(data: dict[str, Any]) -> list[ClientEvent]:
    qrcode = _as_dict(data.get("qrcode") or {}, "qrcode")
    code = qrcode.get("code") or qrcode.get("pairingCode")
    if not code or not isinstance(code, str):
        raise InvalidPayloadError("missing qrcode")
    return [PairingCodeReady(code=code)]


def normalize_webhook(payload: dict[str, Any]) -> list[ClientEvent]:
    """Translate one Evolution webhook payload into client events.

    Unknown event types yield an empty list.

    Raises:
        InvalidPayloadError: If a known event type has an invalid shape.
    """
    data = payload.get("data")
    if not isinstance(data, dict):
        raise InvalidPayloadError("missing data object")

    name = _event_name(payload)
    if name == "messages.upsert":
        return _message_event(data)
    if name == "connection.update":
        return _connection_event(data)
    if name == "qrcode.updated":
        return _qrcode_event(data)
    return []
