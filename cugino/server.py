"""
Process supervisor for the API. Run from project root:
  python -m cugino.server
Any unrecoverable error during startup or serving is logged at CRITICAL and
the process exits with status 1.
"""

import logging
import sys

import uvicorn

from cugino.core.config import get_settings
from cugino.core.logging_config import configure_logging

logger = logging.getLogger("cugino.server")


def main() -> int:
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "Starting Cugino API",
        extra={"host": settings.HOST, "port": settings.PORT, "environment": settings.APP_ENV},
    )
    try:
        uvicorn.run(
            "cugino.main:app",
            host=settings.HOST,
            port=settings.PORT,
            log_level=settings.LOG_LEVEL.lower(),
            reload=settings.DEBUG and settings.is_development,
        )
    except SystemExit as e:
        # uvicorn exits through sys.exit() when the app cannot load or the port is taken
        if e.code in (None, 0):
            return 0
        logger.critical(
            "Cugino API stopped on an unrecoverable error (uvicorn exit code %s)", e.code
        )
        return 1
    except Exception:
        logger.critical("Cugino API stopped on an unrecoverable error", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
