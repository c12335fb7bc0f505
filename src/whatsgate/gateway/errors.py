"""Gateway error taxonomy.

Each error knows its wire code, HTTP status and any extra JSON fields;
the API layer renders them uniformly.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def headers(self) -> dict[str, str]:
        return {}


class ValidationFailed(GatewayError):
    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message, errores=errors or [])


class AuthRequired(GatewayError):
    code = "auth_required"
    status_code = 401


class AuthInvalid(GatewayError):
    code = "auth_invalid"
    status_code = 401


class PermissionDenied(GatewayError):
    code = "permission_denied"
    status_code = 403


class NotConnected(GatewayError):
    code = "not_connected"
    status_code = 503


class RateLimited(GatewayError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message, retryAfter=retry_after)
        self.retry_after = retry_after

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class InvalidDestination(GatewayError):
    code = "invalid_destination"
    status_code = 400


class UnregisteredNumber(GatewayError):
    code = "unregistered_number"
    status_code = 400


class AttachmentNotFound(GatewayError):
    code = "file_not_found"
    status_code = 400


class AttachmentTooLarge(GatewayError):
    code = "file_too_large"
    status_code = 400


class SendFailed(GatewayError):
    code = "send_failed"
    status_code = 500


class UpstreamFailed(GatewayError):
    """A directory/registration query to the messaging client failed."""

    code = "upstream_failed"
    status_code = 502
