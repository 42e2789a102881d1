"""Uvicorn logging configuration utilities.

Keeps uvicorn's own startup, error and access logs in the same trace-aware
format as the pipeline's logs.
"""

from __future__ import annotations

import os

from middleware_pipeline.utils.constants import (
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    LOG_ROTATION_CONFIG,
    LOGGER,
)
from middleware_pipeline.utils.pylogger import get_log_file_path

UVICORN_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "uvicorn.asgi",
    "middleware_pipeline",
)


def get_uvicorn_log_config():
    """Return a uvicorn-compatible logging config writing to console and file."""
    log_level = os.environ.get("PYTHON_LOG_LEVEL", "INFO").upper()
    log_file_path = get_log_file_path()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            LOGGER: {
                "()": "middleware_pipeline.utils.pylogger.TraceFormatter",
                "format": DEFAULT_LOG_FORMAT,
                "datefmt": DEFAULT_LOG_DATE_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "formatter": LOGGER,
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "formatter": LOGGER,
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_file_path,
                **LOG_ROTATION_CONFIG,
            },
        },
        "loggers": {
            name: {
                "handlers": ["console", "file"],
                "level": log_level,
                "propagate": False,
            }
            for name in UVICORN_LOGGERS
        },
        "root": {
            "level": log_level,
            "handlers": ["console", "file"],
        },
    }

