"""Request/response logging stage."""

from __future__ import annotations

import logging
import time
from typing import Optional

from middleware_pipeline.src.core.exceptions.exceptions import ConfigurationError
from middleware_pipeline.src.core.pipeline import AsyncHandler, MiddlewareFactory
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.src.settings import settings
from middleware_pipeline.utils.pylogger import get_python_logger

logger = get_python_logger(__name__)


def _level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def with_request_logging(
    enabled: Optional[bool] = None, log_headers: Optional[bool] = None
) -> MiddlewareFactory:
    """Return a factory that logs every request and the response it produced.

    Args:
        enabled: Log at all; defaults to ``REQUEST_LOGGING_ENABLED``.
        log_headers: Include request and response headers; defaults to
            ``REQUEST_LOG_HEADERS``.

    Raises:
        ConfigurationError: If an option is not a bool.
    """
    if enabled is None:
        enabled = settings.REQUEST_LOGGING_ENABLED
    if log_headers is None:
        log_headers = settings.REQUEST_LOG_HEADERS
    for name, value in (("enabled", enabled), ("log_headers", log_headers)):
        if not isinstance(value, bool):
            raise ConfigurationError(
                f"with_request_logging option {name} must be a bool, got {type(value).__name__}"
            )

    def request_logging(next_handler: AsyncHandler) -> AsyncHandler:
        if not enabled:
            return next_handler

        async def log_request(request: RequestContext) -> PipelineResponse:
            start_time = time.time()

            request_data = {
                "method": request.method,
                "path": request.path,
                "query_params": dict(request.query) if request.query else None,
            }
            if log_headers:
                request_data["headers"] = dict(request.headers)

            logger.info("Incoming request: %s", request_data)

            response = await next_handler(request)

            duration_ms = (time.time() - start_time) * 1000
            response_data = {
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
            if log_headers:
                response_data["headers"] = dict(response.headers)

            logger.log(
                _level_for_status(response.status_code),
                "Outgoing response: %s",
                response_data,
            )
            return response

        return log_request

    return request_logging
