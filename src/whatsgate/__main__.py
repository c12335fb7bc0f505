"""Run the gateway: ``python -m whatsgate`` or the ``whatsgate`` script."""

import uvicorn

from whatsgate.api.factory import create_app
from whatsgate.infra.config import load_settings
from whatsgate.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    configure_logging()
    settings = load_settings()
    app = create_app(settings, shutdown_on_fault=True)
    logger.info(
        "starting gateway",
        extra={"extra_fields": {"port": settings.port, "allowedOrigins": list(settings.allowed_origins)}},
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
