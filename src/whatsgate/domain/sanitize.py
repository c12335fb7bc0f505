"""Input sanitizer for externally supplied payloads.

Strings lose ASCII control characters (tab is stripped too, newline and
carriage return are kept) and are truncated; containers are rebuilt, never
modified in place.
"""

from __future__ import annotations

import re
from typing import Any

MAX_STRING_LENGTH = 10_000

_CONTROL_CHARS = re.compile(r"[\x00-\x09\x0B\x0C\x0E-\x1F\x7F]")


def clean_string(value: str) -> str:
    return _CONTROL_CHARS.sub("", value)[:MAX_STRING_LENGTH]


def sanitize(value: Any) -> Any:
    """Return a sanitized copy of ``value``.

    Mappings and sequences are walked recursively; every string leaf is
    cleaned. Other leaves (numbers, booleans, None) pass through unchanged.
    """
    if isinstance(value, str):
        return clean_string(value)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize(item) for item in value)
    return value
