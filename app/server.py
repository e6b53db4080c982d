# app/server.py
import logging
import sys

import uvicorn

from app.core.config import ConfigurationError, settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration, build the app and serve it. Exits 1 on startup failure."""
    try:
        from app.main import create_app
        app = create_app()
    except ConfigurationError as e:
        for error in e.errors:
            logger.critical(f"Configuration error: {error}")
        logger.critical("Refusing to start")
        sys.exit(1)
    except Exception:
        logger.exception("Startup failed")
        sys.exit(1)

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
