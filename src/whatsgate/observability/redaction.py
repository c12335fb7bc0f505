"""Redaction helpers for safe logging.

Phone numbers, addressed identities and message bodies must never reach the
logs verbatim. Use mask_address() for identities and log lengths for text.
"""

import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{5,}\d")

_REDACTED = "[REDACTED]"


def mask_address(address: str) -> str:
    """Mask an addressed identity, keeping the address-space suffix.

    "5511999998888@c.us" -> "55*********88@c.us"
    """
    if not address:
        return ""
    local, sep, suffix = address.partition("@")
    if len(local) <= 4:
        masked = "*" * len(local)
    else:
        masked = local[:2] + "*" * (len(local) - 4) + local[-2:]
    return f"{masked}{sep}{suffix}"


def redact_string(value: str) -> str:
    return _PHONE_PATTERN.sub(_REDACTED, value)


def redact_value(value: Any) -> str:
    """Render any value for logs without leaking content."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
