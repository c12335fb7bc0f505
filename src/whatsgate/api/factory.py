"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import os
import signal
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from whatsgate.gateway.errors import RateLimited
from whatsgate.gateway.rate_limit import GENERAL_POLICY
from whatsgate.gateway.session import SessionGateway
from whatsgate.infra.config import Settings, load_settings
from whatsgate.observability.correlation import (
    CORRELATION_ID_HEADER,
    bind_request_context,
    generate_correlation_id,
    reset_request_context,
)
from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import safe_log_context
from whatsgate.whatsapp.client import MessagingClient

from .body_limit import BodySizeLimitMiddleware
from .auth import API_KEY_HEADER, client_identity
from .errors import error_response, gateway_error_response, install_error_handlers
from .routes import auth, directory, messages, status, webhooks_evolution

logger = get_logger(__name__)

_SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; img-src 'self' data: https:"
    ),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}

# Webhooks are authenticated by shared secret and bursty; they skip the general limit
_RATE_LIMIT_EXEMPT_PREFIXES = ("/webhooks/",)


def _default_client(settings: Settings) -> MessagingClient:
    from whatsgate.whatsapp.evolution_client import EvolutionClient

    return EvolutionClient(settings)


def _fatal_fault_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Unhandled fault outside any request: log it and shut down in order.

    Contexts without an exception are loop diagnostics (slow callbacks,
    transport notices) and go to the default handler.
    """
    exc = context.get("exception")
    if exc is None:
        loop.default_exception_handler(context)
        return
    logger.critical(
        "unhandled fault outside request context - shutting down",
        exc_info=exc,
        extra={"extra_fields": safe_log_context(detail=context.get("message", ""))},
    )
    # SIGTERM lets the server stop accepting requests and run the lifespan shutdown
    os.kill(os.getpid(), signal.SIGTERM)


def create_app(
    settings: Settings | None = None,
    client: MessagingClient | None = None,
    shutdown_on_fault: bool = False,
) -> FastAPI:
    """Create the gateway app.

    Args:
        settings: Explicit settings. If None, loaded from the environment.
        client: Messaging client. If None, an EvolutionClient is built from settings.
        shutdown_on_fault: Install a loop exception handler that turns unhandled
            background faults into an orderly shutdown (server processes only).

    Returns:
        Configured FastAPI application. ``app.state.gateway`` holds the SessionGateway.
    """
    settings = settings or load_settings()
    client = client or _default_client(settings)
    gateway = SessionGateway(client, settings)

    if hasattr(client, "set_event_sink"):
        client.set_event_sink(gateway.publish)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if shutdown_on_fault:
            asyncio.get_running_loop().set_exception_handler(_fatal_fault_handler)
        await gateway.start()
        try:
            yield
        finally:
            logger.info("shutting down gateway")
            await gateway.stop()

    app = FastAPI(
        title="WhatsApp Gateway",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway

    install_error_handlers(app)

    # Middleware added last runs first: rate limit < timeout < body size < headers < context

    @app.middleware("http")
    async def general_rate_limit(request: Request, call_next) -> Response:
        if not request.url.path.startswith(_RATE_LIMIT_EXEMPT_PREFIXES):
            try:
                gateway.admit(GENERAL_POLICY, client_identity(request))
            except RateLimited as exc:
                return gateway_error_response(exc)
        return await call_next(request)

    @app.middleware("http")
    async def request_timeout(request: Request, call_next) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=settings.request_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "request timed out",
                extra={"extra_fields": safe_log_context(path=request.url.path)},
            )
            return error_response(504, "request_timeout", "La solicitud tardó demasiado")

    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size)

    @app.middleware("http")
    async def security_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def request_context(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        tokens = bind_request_context(cid, client_identity(request))
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_request_context(tokens)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization", API_KEY_HEADER],
    )

    app.include_router(status.router)
    app.include_router(auth.router)
    app.include_router(messages.router)
    app.include_router(directory.router)
    app.include_router(webhooks_evolution.router)

    return app
