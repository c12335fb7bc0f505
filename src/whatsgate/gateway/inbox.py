"""Bounded FIFO buffer of inbound messages."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from whatsgate.domain.addressing import BROADCAST_SENDER

DEFAULT_CAPACITY = 100
MAX_BODY_LENGTH = 1000


@dataclass(frozen=True)
class InboundMessageRecord:
    sender_id: str
    body: str
    is_group: bool
    group_name: str
    author_id: str
    author_name: str
    author_number: str
    message_id: str
    received_at: str

    def to_dict(self) -> dict[str, object]:
        """Wire shape used by GET /api/mensajes-recibidos."""
        return {
            "de": self.sender_id,
            "cuerpo": self.body,
            "esGrupo": self.is_group,
            "nombreGrupo": self.group_name,
            "autor": self.author_id,
            "nombreAutor": self.author_name,
            "numeroAutor": self.author_number,
            "idMensaje": self.message_id,
            "marcaTiempo": self.received_at,
        }


class InboundMessageBuffer:
    """Keeps the most recent ``capacity`` records in arrival order.

    Eviction is by arrival only; reading never refreshes a record.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._records: deque[InboundMessageRecord] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: InboundMessageRecord) -> bool:
        """Buffer a record. Returns False if it came from the broadcast sender."""
        if record.sender_id == BROADCAST_SENDER:
            return False
        self._records.append(record)
        return True

    def drain(self, clear: bool = False) -> list[InboundMessageRecord]:
        """Return buffered records oldest-first; with ``clear`` also empty the buffer.

        Swapping in a fresh deque makes take-and-clear one step, so no record
        is handed to two draining callers.
        """
        if not clear:
            return list(self._records)
        taken, self._records = self._records, deque(maxlen=self._records.maxlen)
        return list(taken)
