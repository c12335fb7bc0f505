"""Shared test helpers for the gateway tests.

Regular functions and classes (not fixtures) importable from conftest.py
and individual test modules.
"""

from __future__ import annotations

from dataclasses import replace

from whatsgate.infra.config import Settings
from whatsgate.whatsapp.client import MessagingClientError
from whatsgate.whatsapp.models import Chat, Contact, MediaAttachment, SentMessage

TEST_PASSWORD = "correct horse battery staple"
TEST_SECRET = "test-jwt-secret-0123456789abcdef0123456789abcdef"
WEBHOOK_SECRET = "test-webhook-secret"

# Synthetic identities (not real phone numbers)
REGISTERED_NUMBER = "15550001111"
UNREGISTERED_NUMBER = "15550002222"
GROUP_ID = "120363000000000001@g.us"
AUTHOR_ID = "15550003333@c.us"


def make_settings(**overrides) -> Settings:
    base = Settings(
        jwt_secret=TEST_SECRET,
        api_password=TEST_PASSWORD,
        reconnect_delay=0,
        evolution_webhook_secret=WEBHOOK_SECRET,
    )
    return replace(base, **overrides)


class FakeMessagingClient:
    """In-memory MessagingClient double recording every call."""

    def __init__(self) -> None:
        self.registered: set[str] = {f"{REGISTERED_NUMBER}@c.us"}
        self.sent: list[tuple[str, object, str | None]] = []
        self.initialize_calls = 0
        self.destroy_calls = 0
        self.aclose_calls = 0
        self.fail_sends = False
        self.fail_lookups = False
        self.chats = [
            Chat(id=GROUP_ID, name="Equipo", is_group=True, participants=("a@c.us", "b@c.us")),
            Chat(id=f"{REGISTERED_NUMBER}@c.us", name="Ana", is_group=False),
        ]
        self.contacts = [
            Contact(id=f"{REGISTERED_NUMBER}@c.us", number=REGISTERED_NUMBER, name="Ana"),
            Contact(id="15550009999@c.us", number="15550009999", name="Yo", is_me=True),
            Contact(id="15550008888@c.us", number="15550008888", name=None, pushname="anon"),
            Contact(id=GROUP_ID, number="", name="Equipo", is_group=True),
            Contact(id=AUTHOR_ID, number="15550003333", name="Beto"),
        ]

    async def initialize(self) -> None:
        self.initialize_calls += 1

    async def destroy(self) -> None:
        self.destroy_calls += 1

    async def aclose(self) -> None:
        self.aclose_calls += 1

    async def is_registered_user(self, contact_id: str) -> bool:
        if self.fail_lookups:
            raise MessagingClientError("lookup failed")
        return contact_id in self.registered

    async def send_message(
        self,
        chat_id: str,
        content: str | MediaAttachment,
        caption: str | None = None,
    ) -> SentMessage:
        if self.fail_sends:
            raise MessagingClientError("internal transport detail")
        self.sent.append((chat_id, content, caption))
        return SentMessage(id=f"MSG{len(self.sent):03d}", chat_id=chat_id)

    async def get_chats(self) -> list[Chat]:
        if self.fail_lookups:
            raise MessagingClientError("lookup failed")
        return list(self.chats)

    async def get_contacts(self) -> list[Contact]:
        return list(self.contacts)

    async def get_contact_by_id(self, contact_id: str) -> Contact | None:
        if self.fail_lookups:
            raise MessagingClientError("lookup failed")
        return next((c for c in self.contacts if c.id == contact_id), None)

    async def get_chat_by_id(self, chat_id: str) -> Chat:
        if self.fail_lookups:
            raise MessagingClientError("lookup failed")
        return next(c for c in self.chats if c.id == chat_id)
