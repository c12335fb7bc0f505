"""Clock helpers shared by the gateway components."""

import time
from datetime import datetime, timezone
from typing import Callable

# Wall clock in epoch seconds; components take one of these so tests can freeze time.
Clock = Callable[[], float]

wall_clock: Clock = time.time
monotonic_clock: Clock = time.monotonic


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")
