"""Per-request context: correlation ID and caller address.

Both values live in context variables so log lines emitted deep inside the
gateway (or in tasks spawned while serving a request) can carry them.
"""

import uuid
from contextvars import ContextVar, Token

CORRELATION_ID_HEADER = "X-Correlation-ID"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
client_address_var: ContextVar[str] = ContextVar("client_address", default="")


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    return correlation_id_var.get()


def get_client_address() -> str:
    return client_address_var.get()


def bind_request_context(cid: str, client_address: str) -> tuple[Token[str], Token[str]]:
    """Bind correlation ID and caller address for the current request."""
    return correlation_id_var.set(cid), client_address_var.set(client_address)


def reset_request_context(tokens: tuple[Token[str], Token[str]]) -> None:
    cid_token, address_token = tokens
    correlation_id_var.reset(cid_token)
    client_address_var.reset(address_token)
