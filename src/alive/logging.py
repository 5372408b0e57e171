"""Logging configuration based on environment.

Every record carries ``request_id`` (``-`` outside a request) so log lines
can be matched to audit entries written during the same request.
"""

import logging
import sys

from alive.api.middleware import RequestContextFilter
from alive.config import settings

DEV_FORMAT = "%(levelname)s:     %(name)s - %(message)s"
PROD_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "aiosmtplib")


def _stdout_handler(formatter: str, filters: list[str] | None = None) -> dict:
    handler = {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "stream": "ext://sys.stdout",
    }
    if filters:
        handler["filters"] = filters
    return handler


def get_uvicorn_log_config() -> dict:
    """dictConfig for ``uvicorn.run`` that keeps the request id on app logs."""
    if settings.is_development:
        access_fmt = '%(levelprefix)s "%(request_line)s" %(status_code)s'
        default_fmt = "%(levelprefix)s %(message)s"
    else:
        access_fmt = '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s'
        default_fmt = "%(asctime)s %(levelprefix)s [%(request_id)s] %(message)s"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {"()": "uvicorn.logging.AccessFormatter", "fmt": access_fmt},
            "default": {"()": "uvicorn.logging.DefaultFormatter", "fmt": default_fmt},
        },
        "filters": {
            "request_context": {"()": "alive.api.middleware.RequestContextFilter"},
        },
        "handlers": {
            "access": _stdout_handler("access"),
            "default": _stdout_handler("default", ["request_context"]),
        },
        "loggers": {
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        },
        "root": {"handlers": ["default"], "level": settings.log_level},
    }


def setup_logging() -> None:
    """Configure logging outside uvicorn (CLI commands)."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(logging.Formatter(DEV_FORMAT if settings.is_development else PROD_FORMAT))

    logging.basicConfig(level=getattr(logging, settings.log_level), handlers=[handler])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
