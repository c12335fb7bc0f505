"""MessagingClient backed by an Evolution API instance.

Evolution hosts the WhatsApp Web session; this adapter drives it over HTTP.
Lifecycle and inbound messages reach the gateway through the Evolution
webhook (see api.routes.webhooks_evolution), except for the initial
connection probe done by initialize().

Security: NEVER log destinations or message text. Only masked ids and lengths.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx

from whatsgate.infra.config import Settings
from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import mask_address, safe_log_context

from .client import MessagingClientError
from .evolution_events import from_evolution_jid, to_evolution_jid
from .models import (
    Chat,
    ClientEvent,
    Contact,
    MediaAttachment,
    PairingCodeReady,
    Ready,
    SentMessage,
)

logger = get_logger(__name__)

HTTP_TIMEOUT = 15.0

MAX_RETRIES = 1
RETRY_DELAY = 0.2

_MEDIA_TYPES = ("image", "video", "audio")


def _media_type(mimetype: str) -> str:
    major = mimetype.split("/", 1)[0]
    return major if major in _MEDIA_TYPES else "document"


class EvolutionClient:
    """Evolution API adapter.

    Args:
        settings: Gateway settings carrying EVOLUTION_* values.
        http: Optional preconfigured httpx client (tests inject a MockTransport).
    """

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        if not settings.evolution_base_url or not settings.evolution_instance:
            raise RuntimeError("Missing Evolution config: EVOLUTION_BASE_URL, EVOLUTION_INSTANCE")
        self._instance = settings.evolution_instance
        self._http = http or httpx.AsyncClient(
            base_url=settings.evolution_base_url,
            headers={"apikey": settings.evolution_api_key},
            timeout=HTTP_TIMEOUT,
        )
        self._publish: Callable[[ClientEvent], None] | None = None
        self._owner_id: str | None = None

    def set_event_sink(self, publish: Callable[[ClientEvent], None]) -> None:
        self._publish = publish

    def _emit(self, event: ClientEvent) -> None:
        if self._publish is not None:
            self._publish(event)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Call Evolution, retrying once on network errors and 5xx."""
        url = path.format(instance=self._instance)
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self._http.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json() if response.content else None
            except httpx.HTTPError as e:
                is_5xx = isinstance(e, httpx.HTTPStatusError) and e.response.status_code >= 500
                is_network = isinstance(e, httpx.TransportError)
                if attempt < MAX_RETRIES and (is_5xx or is_network):
                    logger.warning(
                        "evolution request failed, retrying",
                        extra={
                            "extra_fields": safe_log_context(
                                path=path, attempt=attempt, error_type=type(e).__name__
                            )
                        },
                    )
                    await asyncio.sleep(RETRY_DELAY)
                    continue
                logger.error(
                    "evolution request failed",
                    extra={
                        "extra_fields": safe_log_context(
                            path=path, attempt=attempt, error_type=type(e).__name__
                        )
                    },
                )
                raise MessagingClientError(f"evolution {method} {path} failed") from e
        raise MessagingClientError(f"evolution {method} {path} failed")

    async def initialize(self) -> None:
        """Probe the instance; emit Ready or the current pairing code."""
        state = await self._request("GET", "/instance/connectionState/{instance}")
        if ((state or {}).get("instance") or {}).get("state") == "open":
            self._emit(Ready())
            return

        connect = await self._request("GET", "/instance/connect/{instance}") or {}
        code = connect.get("code") or connect.get("pairingCode")
        if code:
            self._emit(PairingCodeReady(code=code))

    async def destroy(self) -> None:
        # The WhatsApp session itself stays linked in Evolution; only our transport closes.
        await self.aclose()

    async def aclose(self) -> None:
        """Release the HTTP transport. Safe to call more than once."""
        await self._http.aclose()

    async def is_registered_user(self, contact_id: str) -> bool:
        number = contact_id.split("@", 1)[0]
        result = await self._request(
            "POST", "/chat/whatsappNumbers/{instance}", json={"numbers": [number]}
        )
        return any(entry.get("exists") for entry in result or [])

    async def send_message(
        self,
        chat_id: str,
        content: str | MediaAttachment,
        caption: str | None = None,
    ) -> SentMessage:
        number = to_evolution_jid(chat_id)
        if isinstance(content, MediaAttachment):
            result = await self._request(
                "POST",
                "/message/sendMedia/{instance}",
                json={
                    "number": number,
                    "mediatype": _media_type(content.mimetype),
                    "mimetype": content.mimetype,
                    "caption": caption or "",
                    "media": content.data,
                    "fileName": content.filename,
                },
            )
        else:
            result = await self._request(
                "POST", "/message/sendText/{instance}", json={"number": number, "text": content}
            )

        message_id = ((result or {}).get("key") or {}).get("id")
        if not message_id:
            raise MessagingClientError("evolution send returned no message id")
        logger.info(
            "evolution message accepted",
            extra={"extra_fields": safe_log_context(to=mask_address(chat_id))},
        )
        return SentMessage(id=message_id, chat_id=chat_id)

    async def get_chats(self) -> list[Chat]:
        groups = await self._request(
            "GET", "/group/fetchAllGroups/{instance}", params={"getParticipants": "true"}
        )
        return [self._to_chat(group) for group in groups or []]

    async def get_chat_by_id(self, chat_id: str) -> Chat:
        if not chat_id.endswith("@g.us"):
            contact = await self.get_contact_by_id(chat_id)
            name = (contact.name or contact.pushname or "") if contact else ""
            return Chat(id=chat_id, name=name, is_group=False)
        group = await self._request(
            "GET", "/group/findGroupInfos/{instance}", params={"groupJid": chat_id}
        )
        return self._to_chat(group or {"id": chat_id})

    async def get_contacts(self) -> list[Contact]:
        owner = await self._get_owner_id()
        entries = await self._request("POST", "/chat/findContacts/{instance}", json={"where": {}})
        return [self._to_contact(entry, owner) for entry in entries or []]

    async def get_contact_by_id(self, contact_id: str) -> Contact | None:
        entries = await self._request(
            "POST",
            "/chat/findContacts/{instance}",
            json={"where": {"remoteJid": to_evolution_jid(contact_id)}},
        )
        if not entries:
            return None
        return self._to_contact(entries[0], self._owner_id)

    async def _get_owner_id(self) -> str | None:
        if self._owner_id is None:
            instances = await self._request(
                "GET", "/instance/fetchInstances", params={"instanceName": self._instance}
            )
            for entry in instances or []:
                owner = entry.get("ownerJid") or (entry.get("instance") or {}).get("owner")
                if owner:
                    self._owner_id = from_evolution_jid(owner)
                    break
        return self._owner_id

    @staticmethod
    def _to_chat(group: dict[str, Any]) -> Chat:
        participants = tuple(
            from_evolution_jid(p.get("id", "")) for p in group.get("participants") or []
        )
        return Chat(
            id=group.get("id", ""),
            name=group.get("subject") or "",
            is_group=True,
            participants=participants,
        )

    @staticmethod
    def _to_contact(entry: dict[str, Any], owner_id: str | None) -> Contact:
        contact_id = from_evolution_jid(entry.get("remoteJid") or entry.get("id") or "")
        return Contact(
            id=contact_id,
            number=contact_id.split("@", 1)[0],
            name=entry.get("name") or entry.get("pushName"),
            pushname=entry.get("pushName"),
            is_group=contact_id.endswith("@g.us"),
            is_me=owner_id is not None and contact_id == owner_id,
        )
