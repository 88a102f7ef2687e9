import logging
import sys

import structlog
from pythonjsonlogger.json import JsonFormatter


def setup_logging(settings=None):
    """Structured logging setup: console output in development, JSON in production."""

    production = bool(settings and settings.is_production)
    level = logging.DEBUG if settings is not None and settings.debug else logging.INFO

    log_format = "%(asctime)s %(name)s %(levelname)s %(message)s"
    # JSON for log shippers in production, plain text next to the console renderer otherwise
    formatter = JsonFormatter(fmt=log_format) if production else logging.Formatter(log_format)

    renderer = structlog.processors.JSONRenderer() if production else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Root logger, replace handlers so repeated app creation does not duplicate output
    logger = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.handlers = [handler]
    logger.setLevel(level)

    # Keep SQL echo out of application logs unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return structlog.get_logger()
