"""Request body size cap.

Content-Length is checked up front; bodies without it (chunked uploads) are
counted as they are read, so no handler ever sees more than the cap.
"""

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import error_response

PAYLOAD_TOO_LARGE = 413


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name == b"content-length" and value.isdigit() and int(value) > self.max_body_size:
                response = error_response(
                    PAYLOAD_TOO_LARGE, "payload_too_large", "Payload demasiado grande"
                )
                await response(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    # Rendered as payload_too_large by the HTTP exception handler
                    raise HTTPException(status_code=PAYLOAD_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)
