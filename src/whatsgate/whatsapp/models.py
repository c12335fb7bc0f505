"""Messaging client data model: events, directory entries, media."""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class RawMessage:
    """Inbound message as delivered by the messaging client.

    ``author`` is only set for group messages (the participant who wrote it).
    """

    from_id: str
    body: str
    message_id: str
    author: str | None = None
    push_name: str | None = None


@dataclass(frozen=True)
class Chat:
    id: str
    name: str
    is_group: bool
    participants: tuple[str, ...] = ()


@dataclass(frozen=True)
class Contact:
    id: str
    number: str
    name: str | None = None
    pushname: str | None = None
    is_group: bool = False
    is_me: bool = False


@dataclass(frozen=True)
class SentMessage:
    id: str
    chat_id: str


@dataclass(frozen=True)
class MediaAttachment:
    mimetype: str
    data: str  # base64
    filename: str

    @classmethod
    def from_path(cls, path: Path) -> MediaAttachment:
        mimetype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = base64.b64encode(path.read_bytes()).decode("ascii")
        return cls(mimetype=mimetype, data=data, filename=path.name)


# Client events


@dataclass(frozen=True)
class PairingCodeReady:
    code: str


@dataclass(frozen=True)
class LoadingProgress:
    percent: int
    message: str = ""


@dataclass(frozen=True)
class Authenticated:
    pass


@dataclass(frozen=True)
class AuthFailure:
    reason: str


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class Disconnected:
    reason: str


@dataclass(frozen=True)
class MessageReceived:
    message: RawMessage = field(repr=False)


ClientEvent = Union[
    PairingCodeReady,
    LoadingProgress,
    Authenticated,
    AuthFailure,
    Ready,
    Disconnected,
    MessageReceived,
]

