"""Logging setup shared by the API, the worker and the seed script.

Development logs are plain lines; production logs are JSON objects
(python-json-logger) so fields passed through ``extra=`` stay queryable.
"""
import logging
import logging.config
import sys
from typing import Dict, Any, Optional

from .settings import get_settings

settings = get_settings()

DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at the application level
QUIET_LOGGERS = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
}


def _formats(service_name: Optional[str]) -> Dict[str, str]:
    if not service_name:
        return {
            "json": "%(asctime)s %(levelname)s %(name)s %(message)s",
            "console": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        }
    return {
        "json": f"%(asctime)s %(levelname)s {service_name} %(name)s %(message)s",
        "console": f"%(asctime)s [{service_name}] [%(levelname)s] %(name)s: %(message)s",
    }


def get_logging_config(service_name: Optional[str] = None) -> Dict[str, Any]:
    """dictConfig for one process; JSON output when running in production."""
    formats = _formats(service_name)
    level = settings.log_level

    loggers = {
        name: {"level": lvl, "handlers": ["console"], "propagate": False}
        for name, lvl in QUIET_LOGGERS.items()
    }
    loggers["spotlight"] = {"level": level, "handlers": ["console"], "propagate": False}
    # SQL echo follows the debug flag
    loggers["sqlalchemy.engine"] = {
        "level": "INFO" if settings.debug else "WARNING",
        "handlers": ["console"],
        "propagate": False,
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": formats["json"],
                "datefmt": DATEFMT,
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter",
            },
            "console": {"format": formats["console"], "datefmt": DATEFMT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "json" if settings.environment == "production" else "console",
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(service_name: Optional[str] = None) -> None:
    logging.config.dictConfig(get_logging_config(service_name))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
