import logging
import sys

import structlog

from storefront.core.config import settings

# Chatty third-party loggers; request logging middleware already covers access lines
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "razorpay", "celery.redirected")


def _add_service_context(logger, method_name, event_dict):
    event_dict.setdefault("service", "storefront")
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def configure_logging(level: int = None) -> None:
    """
    Route structlog and stdlib logging through one pipeline.

    Development (DEBUG) renders coloured console lines; every other
    environment emits one JSON object per line with tracebacks as dicts.
    """
    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO

    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
        exception_processor = structlog.processors.format_exc_info
    else:
        renderer = structlog.processors.JSONRenderer()
        exception_processor = structlog.processors.dict_tracebacks

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_service_context,
            structlog.processors.StackInfoRenderer(),
            exception_processor,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
