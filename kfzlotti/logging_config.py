import logging
import os
from logging.config import dictConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Route every kfzlotti logger to stderr.

    ``KFZ_LOG_LEVEL`` sets the root level. Request lines from httpx only show
    up with ``KFZ_DEBUG_HTTP=1``; otherwise dataset fetches would log one line
    per request on every sync cycle.
    """
    level = os.getenv("KFZ_LOG_LEVEL", "INFO").upper()
    http_level = "DEBUG" if os.getenv("KFZ_DEBUG_HTTP", "0") == "1" else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": DEFAULT_LOG_FORMAT}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "httpx": {"level": http_level},
                "httpcore": {"level": http_level},
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )
