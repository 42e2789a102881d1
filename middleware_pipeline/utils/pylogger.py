"""Logging utilities for the middleware pipeline service.

This module provides trace-aware formatters, configuration utilities and
shared logging components used across the pipeline, its factories and the
ASGI host.
"""

from __future__ import annotations

import logging.config
import os
import socket
import tempfile

from tqdm import tqdm

from middleware_pipeline.utils.constants import (
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    LOG_CONTEXT_FIELDS,
    LOG_ROTATION_CONFIG,
    LOGGER,
    UNKNOWN,
)
from middleware_pipeline.utils.trace_context import get_log_context, get_trace_id


def get_log_file_path(default_path: str = "/etc/logs/app.log") -> str:
    """Get the log file path with directory creation and fallback handling.

    Args:
        default_path: Default log file path if LOG_FILE_PATH env var is not set

    Returns:
        Valid log file path that can be written to
    """
    log_file_path = os.environ.get("LOG_FILE_PATH", default_path)

    log_dir = os.path.dirname(log_file_path)
    if log_dir and not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir, exist_ok=True)
        except (OSError, PermissionError):
            # Fallback to temp directory if log directory is not writable
            log_file_path = os.path.join(tempfile.gettempdir(), "app.log")

    return log_file_path


class TqdmLoggingHandler(logging.StreamHandler):
    """Logging handler that writes through tqdm so progress bars stay intact."""

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg)
        except Exception:
            self.handleError(record)


class TraceFormatter(logging.Formatter):
    """Formatter that adds trace ID, request context, hostname and environment to records."""

    def format(self, record):
        """Format the log record with trace context information."""
        record.trace_id = get_trace_id() or "no-trace"

        log_context = get_log_context()
        for field in LOG_CONTEXT_FIELDS:
            setattr(record, field, log_context.get(field, UNKNOWN))

        record.hostname = os.environ.get("HOSTNAME", socket.gethostname())
        record.environment = os.environ.get("APP_ENV", "local")

        return super().format(record)


def configure_logging(
    log_level="INFO",
    log_format=None,
    log_date_format=None,
    enable_file_logging=True,
):
    """Configure logging for the entire application.

    This should be called once at application startup, before the pipeline
    is composed, so factories log through the trace-aware handlers.
    """
    log_level = log_level.upper()
    log_file_path = get_log_file_path() if enable_file_logging else None

    if log_format is None:
        log_format = DEFAULT_LOG_FORMAT
    if log_date_format is None:
        log_date_format = DEFAULT_LOG_DATE_FORMAT

    formatters = {
        LOGGER: {
            "()": TraceFormatter,
            "format": log_format,
            "datefmt": log_date_format,
        }
    }

    handlers = {
        "tqdm_console": {
            "level": log_level,
            "()": TqdmLoggingHandler,
            "formatter": LOGGER,
        },
    }

    if enable_file_logging:
        handlers["file"] = {
            "level": log_level,
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": LOGGER,
            "filename": log_file_path,
            **LOG_ROTATION_CONFIG,
        }

    root_handlers = ["tqdm_console"]
    if enable_file_logging:
        root_handlers.append("file")

    logging.config.dictConfig(
        {
            "version": 1,
            "formatters": formatters,
            "handlers": handlers,
            "root": {
                "level": log_level,
                "handlers": root_handlers,
            },
            "disable_existing_loggers": False,
        }
    )


def get_python_logger(name=None):
    """Get a logger with the specified name.

    Args:
        name: The name of the logger. If None, uses the service logger.
              Use __name__ to get module-specific loggers.

    Returns:
        logging.Logger: Configured logger instance
    """
    if name is None:
        name = LOGGER
    return logging.getLogger(name)
