"""Runtime settings loaded from environment variables.

Every knob has a default suitable for local development except the
operator credential: without API_PASSWORD authentication fails closed.
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field

from whatsgate.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALLOWED_ORIGINS = ("http://localhost:3000",)


@dataclass(frozen=True)
class Settings:
    """Gateway configuration."""

    port: int = 3000
    jwt_secret: str = field(default_factory=lambda: secrets.token_hex(32), repr=False)
    api_password: str | None = field(default=None, repr=False)
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    max_file_size_mb: float = 10
    rate_limit_window_minutes: float = 15
    rate_limit_max: int = 100
    send_limit_window_seconds: float = 60
    send_limit_max: int = 10
    request_timeout: float = 30
    reconnect_delay: float = 30
    max_body_size: int = 1024 * 1024
    evolution_base_url: str = ""
    evolution_instance: str = ""
    evolution_api_key: str = field(default="", repr=False)
    evolution_webhook_secret: str = field(default="", repr=False)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_minutes * 60


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def _parse_origins(raw: str) -> tuple[str, ...]:
    origins = tuple(o.strip() for o in raw.split(",") if o.strip())
    return origins or DEFAULT_ALLOWED_ORIGINS


def load_settings() -> Settings:
    """Build Settings from the process environment.

    Raises:
        RuntimeError: If a numeric variable is malformed.
    """
    jwt_secret = os.environ.get("JWT_SECRET", "")
    if not jwt_secret:
        logger.warning("JWT_SECRET not set - using an ephemeral secret, tokens will not survive restarts")
        jwt_secret = secrets.token_hex(32)

    api_password = os.environ.get("API_PASSWORD") or None
    if api_password is None:
        logger.error("API_PASSWORD not configured - authentication will reject every request")

    return Settings(
        port=int(_env_number("PORT", 3000, int)),
        jwt_secret=jwt_secret,
        api_password=api_password,
        allowed_origins=_parse_origins(os.environ.get("ALLOWED_ORIGINS", "")),
        max_file_size_mb=_env_number("MAX_FILE_SIZE", 10),
        rate_limit_window_minutes=_env_number("RATE_LIMIT_WINDOW", 15),
        rate_limit_max=int(_env_number("RATE_LIMIT_MAX", 100, int)),
        request_timeout=_env_number("REQUEST_TIMEOUT", 30),
        reconnect_delay=_env_number("RECONNECT_DELAY", 30),
        max_body_size=int(_env_number("MAX_BODY_SIZE", 1024 * 1024, int)),
        evolution_base_url=os.environ.get("EVOLUTION_BASE_URL", "").rstrip("/"),
        evolution_instance=os.environ.get("EVOLUTION_INSTANCE", ""),
        evolution_api_key=os.environ.get("EVOLUTION_API_KEY", ""),
        evolution_webhook_secret=os.environ.get("EVOLUTION_WEBHOOK_SECRET", ""),
    )
