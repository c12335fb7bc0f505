"""In-memory fixed-window rate limiter.

Counts are per (policy, client identity) and live only in process memory:
a restart forgets every window. Identities are network addresses, so
clients behind one NAT or proxy share a budget.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from whatsgate.infra.time import Clock, monotonic_clock

GENERAL_POLICY = "general"
SEND_POLICY = "send"

# Expired windows are swept once this many identities are tracked.
_SWEEP_THRESHOLD = 10_000


@dataclass(frozen=True)
class RatePolicy:
    window_seconds: float
    max_requests: int


@dataclass
class RateWindow:
    count: int
    window_start: float


@dataclass(frozen=True)
class Admission:
    allowed: bool
    retry_after: int = 0


class RateLimiter:
    """Admits or rejects requests against named policies.

    Policies never share counters: the same identity has an independent
    window per policy.
    """

    def __init__(self, policies: dict[str, RatePolicy], clock: Clock = monotonic_clock) -> None:
        self._policies = dict(policies)
        self._clock = clock
        self._windows: dict[str, dict[str, RateWindow]] = {name: {} for name in self._policies}

    def admit(self, policy_id: str, identity: str) -> Admission:
        policy = self._policies[policy_id]
        windows = self._windows[policy_id]
        now = self._clock()

        window = windows.get(identity)
        if window is None or now - window.window_start >= policy.window_seconds:
            if len(windows) >= _SWEEP_THRESHOLD:
                self._sweep(policy_id, now)
            window = RateWindow(count=0, window_start=now)
            windows[identity] = window

        if window.count >= policy.max_requests:
            remaining = policy.window_seconds - (now - window.window_start)
            return Admission(allowed=False, retry_after=max(1, math.ceil(remaining)))

        window.count += 1
        return Admission(allowed=True)

    def _sweep(self, policy_id: str, now: float) -> None:
        policy = self._policies[policy_id]
        windows = self._windows[policy_id]
        for identity in [
            key for key, w in windows.items() if now - w.window_start >= policy.window_seconds
        ]:
            del windows[identity]
