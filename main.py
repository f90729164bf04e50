"""Main entry point for running the Waypoint API."""

import os

import uvicorn
from loguru import logger

from waypoint.api.main import create_app
from waypoint.core.config import get_settings
from waypoint.core.logging import setup_logging


def main() -> None:
    """Run the API under uvicorn.

    SIGINT/SIGTERM stop accepting connections, give in-flight requests
    ``SERVER_CONFIG__SHUTDOWN_GRACE_SECONDS`` to finish, then close the rest;
    the application teardown callbacks run afterwards.
    """
    settings = get_settings()

    setup_logging(settings)

    port = int(os.environ.get("PORT", settings.api_port))

    # Route uvicorn's own loggers through Loguru
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {
                "class": "waypoint.core.logging.InterceptHandler",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }
    grace_seconds = settings.server_config.shutdown_grace_seconds

    if settings.debug:
        logger.info(
            "Starting Uvicorn on http://{}:{} (development mode with auto-reload)",
            settings.api_host,
            port,
        )
        uvicorn.run(
            "waypoint.api.main:create_app",
            factory=True,
            host=settings.api_host,
            port=port,
            reload=True,
            log_config=log_config,
            timeout_graceful_shutdown=grace_seconds,
        )
    else:
        logger.info(
            "Starting Uvicorn on http://{}:{} (production mode)",
            settings.api_host,
            port,
        )
        uvicorn.run(
            create_app(settings),
            host=settings.api_host,
            port=port,
            reload=False,
            log_config=log_config,
            timeout_graceful_shutdown=grace_seconds,
        )


if __name__ == "__main__":
    main()
