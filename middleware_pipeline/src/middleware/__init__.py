"""Middleware factories for request pipelines.

Each factory wraps the next handler of a pipeline: tracing and request
logging, cookie-based authorization redirects, locale routing and error
responses.
"""

from __future__ import annotations

from middleware_pipeline.src.middleware.authorization import with_authorization
from middleware_pipeline.src.middleware.error_response import with_error_response
from middleware_pipeline.src.middleware.locale import with_locale
from middleware_pipeline.src.middleware.request_logging import with_request_logging
from middleware_pipeline.src.middleware.trace_middleware import TraceMiddleware, with_tracing

__all__ = [
    "TraceMiddleware",
    "with_authorization",
    "with_error_response",
    "with_locale",
    "with_request_logging",
    "with_tracing",
]
