import logging
import logging.config
import os
from typing import Optional

import structlog

from tutor_api.config import settings

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "openai", "google")


def configure_logging(log_dir: Optional[str] = None, level: Optional[str] = None):
    """
    Configures structlog and standard library logging.
    - JSON output to <log_dir>/tutor_api.log, rotated at 10MB
    - Console output, colored only in the local environment

    Defaults come from ``settings.log_dir`` and ``settings.log_level``.
    """
    log_dir = log_dir or settings.log_dir
    level = level or settings.log_level

    os.makedirs(log_dir, exist_ok=True)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = ["console", "file"]
    loggers = {
        "": {"handlers": handlers, "level": level, "propagate": True},
        "uvicorn.access": {"handlers": handlers, "level": level, "propagate": False},
        "uvicorn.error": {"handlers": handlers, "level": level, "propagate": False},
    }
    for name in _QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": structlog.processors.JSONRenderer(),
                    "foreign_pre_chain": shared_processors,
                },
                "console": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": structlog.dev.ConsoleRenderer(colors=settings.env == "local"),
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": {
                "console": {
                    "level": level,
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "stream": "ext://sys.stdout",
                },
                "file": {
                    "level": level,
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": os.path.join(log_dir, "tutor_api.log"),
                    "formatter": "json",
                    "maxBytes": 10 * 1024 * 1024,
                    "backupCount": 5,
                },
            },
            "loggers": loggers,
        }
    )
