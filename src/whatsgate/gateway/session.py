"""Session gateway: the operation surface behind the HTTP API.

Owns the connection state machine, the inbound buffer, the token service and
the rate limiter, and consumes messaging-client events from a single queue.
Everything runs on one event loop; handlers never interleave mid-mutation,
so no locks guard the shared state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from whatsgate.domain.addressing import (
    BROADCAST_SENDER,
    is_group_address,
    is_valid_phone_number,
    to_chat_id,
    to_contact_id,
)
from whatsgate.infra.config import Settings
from whatsgate.infra.time import utc_now_iso
from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import mask_address, safe_log_context
from whatsgate.whatsapp.client import MessagingClient
from whatsgate.whatsapp.models import (
    AuthFailure,
    Chat,
    ClientEvent,
    Contact,
    MediaAttachment,
    MessageReceived,
    RawMessage,
)

from .connection import ConnectionStateMachine, StateKind
from .errors import (
    AttachmentNotFound,
    AttachmentTooLarge,
    AuthInvalid,
    InvalidDestination,
    NotConnected,
    PermissionDenied,
    RateLimited,
    SendFailed,
    UnregisteredNumber,
    UpstreamFailed,
)
from .inbox import MAX_BODY_LENGTH, InboundMessageBuffer, InboundMessageRecord
from .rate_limit import GENERAL_POLICY, SEND_POLICY, RateLimiter, RatePolicy
from .tokens import Claims, Permission, TokenService

logger = get_logger(__name__)

API_SUBJECT = "api_user"
MAX_CONTACTS = 100
STATUS_VERSION = "2.0.0"


@dataclass(frozen=True)
class SendRequest:
    destination: str
    body: str
    attachment_path: str | None = None
    is_group: bool = False


class SessionGateway:
    """Composes token checks, rate limits, connection state and the inbox.

    Args:
        client: Messaging client the write operations are delegated to.
        settings: Gateway settings.
        tokens: Optional token service override (tests).
        limiter: Optional rate limiter override (tests).
    """

    def __init__(
        self,
        client: MessagingClient,
        settings: Settings,
        tokens: TokenService | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.client = client
        self.tokens = tokens or TokenService(settings.jwt_secret, settings.api_password)
        self.limiter = limiter or RateLimiter(
            {
                GENERAL_POLICY: RatePolicy(settings.rate_limit_window_seconds, settings.rate_limit_max),
                SEND_POLICY: RatePolicy(settings.send_limit_window_seconds, settings.send_limit_max),
            }
        )
        self.connection = ConnectionStateMachine(client.initialize, settings.reconnect_delay)
        self.inbox = InboundMessageBuffer()
        self._max_file_size = settings.max_file_size_bytes
        self._events: asyncio.Queue[ClientEvent] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Start consuming client events and initialize the client."""
        if self._pump_task is None:
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())
        logger.info("initializing messaging client")
        try:
            await self.client.initialize()
        except Exception as e:
            logger.error(
                "messaging client initialize failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            self.publish(AuthFailure(reason="initialize failed"))

    async def stop(self) -> None:
        """Abandon pending reconnects, close the client if connected, stop the pump.

        The client's local transport is released whether or not it was connected.
        """
        await self.connection.shutdown()
        if self.connection.connected:
            try:
                await self.client.destroy()
                logger.info("messaging client closed")
            except Exception as e:
                logger.error(
                    "messaging client close failed",
                    extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
                )
        try:
            await self.client.aclose()
        except Exception as e:
            logger.error(
                "messaging client transport close failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None

    # -- event channel ---------------------------------------------------

    def publish(self, event: ClientEvent) -> None:
        """Queue a client event; must be called from the gateway's event loop."""
        self._events.put_nowait(event)

    async def wait_idle(self) -> None:
        """Wait until every published event has been handled."""
        await self._events.join()

    async def _pump(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("client event handler failed")
            finally:
                self._events.task_done()

    async def handle_event(self, event: ClientEvent) -> None:
        if isinstance(event, MessageReceived):
            await self._buffer_message(event.message)
        else:
            self.connection.apply(event)

    async def _buffer_message(self, message: RawMessage) -> None:
        if message.from_id == BROADCAST_SENDER:
            return
        record = await self._build_record(message)
        self.inbox.append(record)
        logger.info(
            "inbound message buffered",
            extra={
                "extra_fields": safe_log_context(
                    sender=mask_address(record.sender_id),
                    is_group=record.is_group,
                    body_len=len(record.body),
                    buffered=len(self.inbox),
                )
            },
        )

    async def _build_record(self, message: RawMessage) -> InboundMessageRecord:
        is_group = is_group_address(message.from_id)
        group_name = author_name = author_number = ""

        if is_group:
            # Enrichment is best-effort: a failed lookup still buffers the message
            try:
                chat = await self.client.get_chat_by_id(message.from_id)
                group_name = chat.name
                if message.author:
                    contact = await self.client.get_contact_by_id(message.author)
                    if contact is not None:
                        author_name = contact.name or contact.pushname or ""
                        author_number = contact.number
            except Exception as e:
                logger.warning(
                    "group details lookup failed",
                    extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
                )

        return InboundMessageRecord(
            sender_id=message.from_id,
            body=(message.body or "")[:MAX_BODY_LENGTH],
            is_group=is_group,
            group_name=group_name,
            author_id=message.author or "",
            author_name=author_name,
            author_number=author_number,
            message_id=message.message_id,
            received_at=utc_now_iso(),
        )

    # -- guards ----------------------------------------------------------

    def admit(self, policy_id: str, identity: str) -> None:
        admission = self.limiter.admit(policy_id, identity)
        if not admission.allowed:
            logger.warning(
                "rate limit exceeded",
                extra={"extra_fields": safe_log_context(policy=policy_id)},
            )
            message = (
                "Límite de mensajes excedido, espera un minuto"
                if policy_id == SEND_POLICY
                else "Demasiadas solicitudes, intenta de nuevo más tarde"
            )
            raise RateLimited(message, retry_after=admission.retry_after)

    def authorize(self, token: str, permission: Permission) -> Claims:
        claims = self.tokens.verify(token)
        if claims is None:
            raise AuthInvalid("Token inválido o expirado")
        if not claims.allows(permission):
            raise PermissionDenied("El token no tiene permiso para esta operación")
        return claims

    def require_ready(self) -> None:
        if self.connection.is_ready:
            return
        state = self.connection.state
        hint = (
            "Escanea el código QR primero"
            if state.kind is StateKind.AWAITING_PAIRING
            else "Espera a que WhatsApp se conecte"
        )
        raise NotConnected("WhatsApp no está conectado", estado=state.label, detalle=hint)

    # -- operations ------------------------------------------------------

    def authenticate(self, credential: str) -> str:
        if not self.tokens.check_credential(credential):
            logger.warning("authentication rejected")
            raise AuthInvalid("Contraseña incorrecta")
        logger.info("token issued")
        return self.tokens.issue(API_SUBJECT, [Permission.SEND_MESSAGES, Permission.READ_MESSAGES])

    def status(self) -> dict[str, Any]:
        state = self.connection.state
        return {
            "estado": state.label,
            "codigoQR": self.connection.pairing_code,
            "listo": self.connection.connected,
            "marcaTiempo": utc_now_iso(),
            "version": STATUS_VERSION,
        }

    async def send_message(self, request: SendRequest) -> str:
        """Deliver a text (or a file with caption) and return the message id.

        The caller has already authorized the token and admitted the request
        against the send policy.
        """
        self.require_ready()

        if not request.is_group and not is_valid_phone_number(request.destination):
            raise InvalidDestination("Formato de número de teléfono inválido")
        chat_id = to_chat_id(request.destination, request.is_group)

        if not request.is_group:
            try:
                registered = await self.client.is_registered_user(chat_id)
            except Exception as e:
                self._log_failure("registration check failed", chat_id, e)
                raise SendFailed("Error al verificar el número")
            if not registered:
                raise UnregisteredNumber("El número no está registrado en WhatsApp")

        media = self._load_attachment(request.attachment_path) if request.attachment_path else None

        try:
            if media is not None:
                sent = await self.client.send_message(chat_id, media, caption=request.body)
            else:
                sent = await self.client.send_message(chat_id, request.body)
        except Exception as e:
            self._log_failure("send failed", chat_id, e)
            raise SendFailed("Error al enviar mensaje")

        logger.info(
            "message sent",
            extra={
                "extra_fields": safe_log_context(
                    to=mask_address(chat_id), body_len=len(request.body), media=media is not None
                )
            },
        )
        return sent.id

    def _load_attachment(self, attachment_path: str) -> MediaAttachment:
        path = Path(attachment_path).expanduser().resolve()
        if not path.is_file():
            raise AttachmentNotFound("El archivo no existe")
        if path.stat().st_size > self._max_file_size:
            limit_mb = self._max_file_size / (1024 * 1024)
            raise AttachmentTooLarge(f"El archivo es demasiado grande. Máximo {limit_mb:g}MB")
        try:
            return MediaAttachment.from_path(path)
        except OSError:
            raise AttachmentNotFound("No se pudo leer el archivo")

    async def list_groups(self) -> list[Chat]:
        self.require_ready()
        try:
            chats = await self.client.get_chats()
        except Exception as e:
            self._log_failure("group listing failed", "", e)
            raise UpstreamFailed("Error al obtener grupos")
        return [chat for chat in chats if chat.is_group]

    async def list_contacts(self) -> list[Contact]:
        self.require_ready()
        try:
            contacts = await self.client.get_contacts()
        except Exception as e:
            self._log_failure("contact listing failed", "", e)
            raise UpstreamFailed("Error al obtener contactos")
        named = [c for c in contacts if not c.is_group and not c.is_me and c.name]
        return named[:MAX_CONTACTS]

    async def verify_number(self, number: str) -> bool:
        self.require_ready()
        if not is_valid_phone_number(number):
            raise InvalidDestination("Formato de número inválido")
        contact_id = to_contact_id(number)
        try:
            return await self.client.is_registered_user(contact_id)
        except Exception as e:
            self._log_failure("registration check failed", contact_id, e)
            raise UpstreamFailed("Error al verificar el número")

    def inbound_messages(self, clear: bool) -> list[InboundMessageRecord]:
        return self.inbox.drain(clear)

    @staticmethod
    def _log_failure(message: str, chat_id: str, error: Exception) -> None:
        logger.error(
            message,
            extra={
                "extra_fields": safe_log_context(
                    to=mask_address(chat_id), error_type=type(error).__name__
                )
            },
        )
