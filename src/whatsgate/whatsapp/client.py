"""Messaging client boundary.

The gateway drives the messaging account through this protocol and receives
its notifications as ClientEvent values on an event channel.
"""

from __future__ import annotations

from typing import Protocol

from .models import Chat, Contact, MediaAttachment, SentMessage


class MessagingClientError(Exception):
    """Raised by a messaging client when an operation fails."""


class MessagingClient(Protocol):
    """Operations the gateway invokes on the messaging client."""

    async def initialize(self) -> None:
        """Start (or restart) the session. Progress arrives as events."""
        ...

    async def destroy(self) -> None:
        ...

    async def aclose(self) -> None:
        """Release local resources (transports, sockets). Called on every shutdown."""
        ...

    async def is_registered_user(self, contact_id: str) -> bool:
        ...

    async def send_message(
        self,
        chat_id: str,
        content: str | MediaAttachment,
        caption: str | None = None,
    ) -> SentMessage:
        ...

    async def get_chats(self) -> list[Chat]:
        ...

    async def get_contacts(self) -> list[Contact]:
        ...

    async def get_contact_by_id(self, contact_id: str) -> Contact | None:
        ...

    async def get_chat_by_id(self, chat_id: str) -> Chat:
        ...
