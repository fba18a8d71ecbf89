"""structlog configuration shared by the API server and the run worker"""

import logging
import logging.config
import os
from typing import Any

import structlog

SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def _is_local() -> bool:
    return os.getenv("ENV_MODE", "LOCAL").upper() == "LOCAL"


def get_logging_config() -> dict[str, Any]:
    """Build a ``logging.config.dictConfig`` payload.

    Both stdlib and structlog records are rendered by a single
    ``ProcessorFormatter``: a colored console renderer when ``ENV_MODE`` is
    ``LOCAL`` and one JSON object per line everywhere else.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    if _is_local():
        renderer: Any = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": SHARED_PROCESSORS,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": {"handlers": ["default"], "level": log_level},
            "uvicorn.error": {"level": log_level},
            # Request logging is done by StructLogMiddleware
            "uvicorn.access": {"handlers": [], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }


def setup_logging() -> None:
    """Apply the logging config and route structlog through stdlib logging."""
    logging.config.dictConfig(get_logging_config())

    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
