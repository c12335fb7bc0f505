"""Error rendering: every failure leaves as {"exito": false, "error": <code>, ...}."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from whatsgate.gateway.errors import GatewayError
from whatsgate.observability.logging import get_logger
from whatsgate.observability.redaction import safe_log_context

logger = get_logger(__name__)

_STATUS_CODES = {
    404: ("not_found", "Endpoint no encontrado"),
    405: ("method_not_allowed", "Método no permitido"),
    413: ("payload_too_large", "Payload demasiado grande"),
    504: ("request_timeout", "La solicitud tardó demasiado"),
}


def error_body(code: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"exito": False, "error": code, "mensaje": message, **extra}


def error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, **extra))


def gateway_error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, **exc.details),
        headers=exc.headers,
    )


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for err in exc.errors():
        # loc is ("body", "destino") / ("path", "numero"); the first item is the source
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"campo": ".".join(loc) or "body", "mensaje": err.get("msg", "")})
    return errors


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        return gateway_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            400, "validation_error", "Solicitud inválida", errores=_field_errors(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code, message = _STATUS_CODES.get(exc.status_code, ("http_error", str(exc.detail)))
        extra = {"detalle": "Visita / para ver los endpoints disponibles"} if exc.status_code == 404 else {}
        return error_response(exc.status_code, code, message, **extra)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled error",
            exc_info=exc,
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        return error_response(500, "internal_error", "Error interno del servidor")
