from __future__ import annotations

import logging
import signal
import sys

import uvicorn

from asset_proxy.core.config import Settings, load_settings
from asset_proxy.core.errors import StartupConfigError
from asset_proxy.main import configure_logging, create_app

logger = logging.getLogger("asset_proxy")


def build_server(settings: Settings) -> uvicorn.Server:
    config = uvicorn.Config(
        create_app(settings),
        host=settings.server_host,
        port=int(settings.server_port),
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
        log_level=str(settings.log_level).lower(),
    )
    server = uvicorn.Server(config)

    # uvicorn drains on SIGINT/SIGTERM; SIGQUIT gets the same treatment.
    sigquit = getattr(signal, "SIGQUIT", None)
    if sigquit is not None:

        def _on_sigquit(signum, frame) -> None:
            logger.info("Shutting down server...")
            server.should_exit = True

        signal.signal(sigquit, _on_sigquit)

    return server


def main() -> None:
    try:
        settings = load_settings()
    except StartupConfigError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    server = build_server(settings)
    logger.info("Starting server on %s:%s", settings.server_host, settings.server_port)
    server.run()
    logger.info("Server exiting")


if __name__ == "__main__":
    main()
