"""Evolution API webhook: lifecycle and inbound message events.

Events are normalized and queued on the session gateway's event channel;
the handler acknowledges as soon as they are queued.
"""

import hmac
from typing import Any

from fastapi import APIRouter, Depends, Header, Request, Response

from whatsgate.api.auth import get_gateway
from whatsgate.domain.sanitize import sanitize
from whatsgate.gateway.session import SessionGateway
from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import safe_log_context
from whatsgate.whatsapp.evolution_events import InvalidPayloadError, normalize_webhook

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/evolution")
async def evolution_webhook(
    request: Request,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
    gateway: SessionGateway = Depends(get_gateway),
) -> Response:
    """Receive an Evolution webhook.

    Returns:
        200 once events are queued (or the event type is ignored).
        400 if the payload is not valid JSON or has an invalid shape.
        401 if the secret is missing, wrong, or not configured (fail closed).
    """
    expected_secret = request.app.state.settings.evolution_webhook_secret
    if not expected_secret:
        logger.error("EVOLUTION_WEBHOOK_SECRET not configured - rejecting webhook (fail-closed)")
        return Response(status_code=401, content="unauthorized")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected_secret):
        logger.warning("evolution webhook secret mismatch")
        return Response(status_code=401, content="unauthorized")

    try:
        payload: dict[str, Any] = sanitize(await request.json())
    except ValueError:
        logger.warning("invalid json body")
        return Response(status_code=400, content="invalid json")
    if not isinstance(payload, dict):
        return Response(status_code=400, content="invalid payload")

    try:
        events = normalize_webhook(payload)
    except InvalidPayloadError as e:
        logger.warning(
            "invalid evolution payload",
            extra={"extra_fields": safe_log_context(error=str(e))},
        )
        return Response(status_code=400, content="invalid payload")

    for event in events:
        gateway.publish(event)

    logger.info(
        "evolution webhook accepted",
        extra={"extra_fields": safe_log_context(event=payload.get("event"), queued=len(events))},
    )
    return Response(status_code=200, content="ok")
