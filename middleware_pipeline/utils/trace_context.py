"""Trace context management utilities.

This module provides context variable management for distributed tracing
and logging context across concurrent pipeline invocations. Each request
runs in its own task, so values set here never leak between requests.
"""

from __future__ import annotations

import contextvars
import os
import uuid
from typing import Any, Dict, Optional

from middleware_pipeline.utils.constants import LOG_CONTEXT_FIELDS, SERVICE, UNKNOWN

# Context variable to store trace ID for the current request
trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)

# Context variable to store log context for the current request
log_context_var: contextvars.ContextVar[Optional[Dict[str, Any]]] = (
    contextvars.ContextVar("log_context", default=None)
)


def generate_trace_id() -> str:
    """Generate a new trace ID using UUID4."""
    app_env = os.environ.get("APP_ENV", "local")
    return f"{SERVICE}-{app_env}-{uuid.uuid4()}"


def set_trace_id(trace_id: Optional[str]) -> None:
    """Set the trace ID for the current context."""
    trace_id_context.set(trace_id)


def get_trace_id() -> Optional[str]:
    """Get the trace ID from the current context."""
    return trace_id_context.get()


def default_log_context() -> Dict[str, Any]:
    """Return a log context with every field set to ``unknown``."""
    return {field: UNKNOWN for field in LOG_CONTEXT_FIELDS}


def set_log_context(log_context: Dict[str, Any]) -> None:
    """Set the log context for the current request."""
    log_context_var.set(log_context)


def get_log_context() -> Dict[str, Any]:
    """Get the log context from the current context."""
    context = log_context_var.get()
    if context is None:
        return default_log_context()
    return context
