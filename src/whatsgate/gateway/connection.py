"""Connection lifecycle of the messaging client as a state machine.

    initializing -> loading(p) -> authenticated -> ready
    initializing -> awaiting_pairing(code) -> authenticated
    authenticated | loading | awaiting_pairing -> auth_failed(reason)
    ready -> disconnected(reason) -> initializing  (after reconnect_delay)

The client is the source of truth: an event that does not follow the table
is logged and applied anyway. Only the reconnect after a disconnect is
self-driven, and it is a single cancellable task, never a retry loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import safe_log_context
from whatsgate.whatsapp.models import (
    Authenticated,
    AuthFailure,
    ClientEvent,
    Disconnected,
    LoadingProgress,
    PairingCodeReady,
    Ready,
)

logger = get_logger(__name__)

DEFAULT_RECONNECT_DELAY = 30.0


class StateKind(str, Enum):
    INITIALIZING = "initializing"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    AWAITING_PAIRING = "awaiting_pairing"
    READY = "ready"
    DISCONNECTED = "disconnected"
    AUTH_FAILED = "auth_failed"


# Labels exposed by the status endpoint (kept for existing dashboards/clients)
_LABELS = {
    StateKind.INITIALIZING: "inicializando",
    StateKind.AUTHENTICATED: "autenticado",
    StateKind.AWAITING_PAIRING: "esperando_qr",
    StateKind.READY: "conectado",
    StateKind.DISCONNECTED: "desconectado",
    StateKind.AUTH_FAILED: "error_autenticacion",
}

_TRANSITIONS: set[tuple[StateKind, StateKind]] = {
    (StateKind.INITIALIZING, StateKind.LOADING),
    (StateKind.INITIALIZING, StateKind.AWAITING_PAIRING),
    (StateKind.LOADING, StateKind.LOADING),
    (StateKind.LOADING, StateKind.AUTHENTICATED),
    (StateKind.LOADING, StateKind.AUTH_FAILED),
    (StateKind.AWAITING_PAIRING, StateKind.AWAITING_PAIRING),
    (StateKind.AWAITING_PAIRING, StateKind.AUTHENTICATED),
    (StateKind.AWAITING_PAIRING, StateKind.AUTH_FAILED),
    (StateKind.AUTHENTICATED, StateKind.LOADING),
    (StateKind.AUTHENTICATED, StateKind.READY),
    (StateKind.AUTHENTICATED, StateKind.AUTH_FAILED),
    (StateKind.READY, StateKind.DISCONNECTED),
    (StateKind.DISCONNECTED, StateKind.INITIALIZING),
}


@dataclass(frozen=True)
class ConnectionState:
    kind: StateKind
    detail: str | int | None = None

    @property
    def label(self) -> str:
        if self.kind is StateKind.LOADING:
            return f"cargando_{self.detail}"
        return _LABELS[self.kind]


INITIALIZING = ConnectionState(StateKind.INITIALIZING)


def _state_for(event: ClientEvent) -> ConnectionState:
    if isinstance(event, PairingCodeReady):
        return ConnectionState(StateKind.AWAITING_PAIRING, event.code)
    if isinstance(event, LoadingProgress):
        return ConnectionState(StateKind.LOADING, event.percent)
    if isinstance(event, Authenticated):
        return ConnectionState(StateKind.AUTHENTICATED)
    if isinstance(event, AuthFailure):
        return ConnectionState(StateKind.AUTH_FAILED, event.reason)
    if isinstance(event, Ready):
        return ConnectionState(StateKind.READY)
    if isinstance(event, Disconnected):
        return ConnectionState(StateKind.DISCONNECTED, event.reason)
    raise TypeError(f"not a connection event: {type(event).__name__}")


class ConnectionStateMachine:
    """Single-writer owner of the connection state and pairing code.

    Args:
        initialize: Coroutine function restarting the messaging client.
        reconnect_delay: Seconds between a disconnect and the reconnect attempt.
    """

    def __init__(
        self,
        initialize: Callable[[], Awaitable[None]],
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self._initialize = initialize
        self._reconnect_delay = reconnect_delay
        self._state = INITIALIZING
        self._pairing_code: str | None = None
        self._connected = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._attempt_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pairing_code(self) -> str | None:
        return self._pairing_code

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def is_ready(self) -> bool:
        return self._connected and self._state.kind is StateKind.READY

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def apply(self, event: ClientEvent) -> ConnectionState:
        """Feed one client event; returns the new state."""
        new_state = _state_for(event)
        if (self._state.kind, new_state.kind) not in _TRANSITIONS:
            logger.warning(
                "unexpected connection transition",
                extra={
                    "extra_fields": safe_log_context(
                        from_state=self._state.kind.value, to_state=new_state.kind.value
                    )
                },
            )
        self._enter(new_state)

        if new_state.kind is StateKind.DISCONNECTED:
            self._schedule_reconnect()
        elif new_state.kind is StateKind.READY:
            self._cancel_reconnect()
        return new_state

    def _enter(self, state: ConnectionState) -> None:
        self._state = state
        self._pairing_code = state.detail if state.kind is StateKind.AWAITING_PAIRING else None
        self._connected = state.kind is StateKind.READY
        # The reason may carry library text; only the tag is logged
        logger.info(
            "connection state changed",
            extra={"extra_fields": safe_log_context(state=state.kind.value)},
        )

    def _schedule_reconnect(self) -> None:
        if self.reconnect_pending:
            logger.info("reconnect already scheduled")
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    def _cancel_reconnect(self) -> None:
        # Only a reconnect still waiting out its delay is cancelled;
        # an attempt already calling initialize() is left to finish
        if self.reconnect_pending:
            self._reconnect_task.cancel()
        self._reconnect_task = None

    async def _reconnect(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        # From here on this is an attempt, not a pending reconnect: a disconnect
        # reported during initialize() schedules a fresh one
        self._reconnect_task = None
        self._attempt_task = asyncio.current_task()
        logger.info("attempting reconnect")
        self._enter(INITIALIZING)
        try:
            await self._initialize()
        except Exception as e:
            # One shot: a failed attempt stays disconnected until the client reports otherwise
            logger.error(
                "reconnect failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            self._enter(ConnectionState(StateKind.DISCONNECTED, "reconnect failed"))
        finally:
            if self._attempt_task is asyncio.current_task():
                self._attempt_task = None

    async def shutdown(self) -> None:
        """Cancel a pending reconnect or an attempt in flight and wait for them to unwind."""
        tasks = [t for t in (self._reconnect_task, self._attempt_task) if t is not None]
        self._reconnect_task = None
        self._attempt_task = None
        for task in tasks:
            if task.done() or task is asyncio.current_task():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
