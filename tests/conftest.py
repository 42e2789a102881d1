"""Shared fixtures for the test suite."""

import os
import tempfile

import pytest

# Keep file logging out of /etc/logs while the application module is imported
os.environ.setdefault(
    "LOG_FILE_PATH", os.path.join(tempfile.gettempdir(), "middleware_pipeline_test.log")
)
os.environ.setdefault("PYTHON_LOG_LEVEL", "WARNING")

from middleware_pipeline.src.schema import PipelineResponse, RequestContext  # noqa: E402
from middleware_pipeline.utils.trace_context import log_context_var, trace_id_context  # noqa: E402


@pytest.fixture(autouse=True)
def reset_trace_context():
    """Clear trace context variables between tests."""
    trace_token = trace_id_context.set(None)
    log_token = log_context_var.set(None)
    yield
    trace_id_context.reset(trace_token)
    log_context_var.reset(log_token)


@pytest.fixture
def ok_handler():
    """Terminal handler that records every call and answers "ok"."""
    calls = []

    def terminal(request: RequestContext) -> PipelineResponse:
        calls.append(request)
        return PipelineResponse(body="ok")

    terminal.calls = calls
    return terminal
