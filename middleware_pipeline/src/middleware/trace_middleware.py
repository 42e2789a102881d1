from __future__ import annotations

import time

import jwt

from middleware_pipeline.src.core.pipeline import AsyncHandler
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.utils.constants import TRACE_HEADER, UNKNOWN
from middleware_pipeline.utils.pylogger import get_python_logger
from middleware_pipeline.utils.trace_context import generate_trace_id, set_log_context, set_trace_id

logger = get_python_logger(__name__)


class TraceMiddleware:
    """Middleware factory that generates and propagates trace IDs for requests."""

    def _extract_jwt_claims(self, request: RequestContext) -> dict:
        """Extract JWT claims from request without validation."""
        try:
            auth_header = request.header("authorization")
            if not auth_header or not auth_header.startswith("Bearer "):
                return {}

            token = auth_header[len("Bearer "):]

            # Claims are only used for logging, so nothing is verified
            return jwt.decode(
                token,
                options={
                    "verify_signature": False,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_aud": False,
                    "verify_iss": False,
                },
            )
        except Exception as e:
            logger.debug(f"Failed to extract JWT claims for logging: {e}")
            return {}

    def _extract_client_info(self, request: RequestContext) -> tuple[str, str]:
        """Extract client name and version from request headers."""
        client_name = (
            request.header("x-client-name")
            or request.header("client-name")
            or request.header("x-app-name")
            or request.header("app-name")
            or UNKNOWN
        )

        client_version = (
            request.header("x-client-version")
            or request.header("client-version")
            or request.header("x-app-version")
            or request.header("app-version")
            or UNKNOWN
        )

        return client_name, client_version

    def _create_log_context(self, request: RequestContext) -> dict:
        """Create logging context with all required fields."""
        jwt_claims = self._extract_jwt_claims(request)
        client_name, client_version = self._extract_client_info(request)

        http_origin = request.header("origin") or request.header("host") or UNKNOWN

        return {
            "client_name": client_name,
            "client_version": client_version,
            "jwt_client_id": jwt_claims.get("azp")
            or jwt_claims.get("client_id")
            or jwt_claims.get("clientId")
            or UNKNOWN,
            "jwt_username": jwt_claims.get("preferred_username") or UNKNOWN,
            "http_origin": http_origin,
            "http_method": request.method,
            "http_path": request.path,
            "user_agent": request.header("user-agent", UNKNOWN),
        }

    def __call__(self, next_handler: AsyncHandler) -> AsyncHandler:
        async def trace(request: RequestContext) -> PipelineResponse:
            trace_id = generate_trace_id()
            set_trace_id(trace_id)

            log_context = self._create_log_context(request)
            set_log_context(log_context)

            # Deeper layers read the trace ID and log context from request state
            request = request.with_state(trace_id=trace_id, log_context=log_context)

            start_time = time.time()
            logger.info(f"Request started: {request.method} {request.path}")

            try:
                response = await next_handler(request)

                # Inner handlers may return a shared response object
                response = response.model_copy(
                    update={"headers": {**response.headers, TRACE_HEADER: trace_id}}
                )

                process_time = time.time() - start_time
                logger.info(
                    f"Request completed: {request.method} {request.path} - Status: {response.status_code} - Duration: {process_time:.3f}s"
                )

                return response

            except Exception as e:
                process_time = time.time() - start_time
                logger.error(
                    f"Request failed: {request.method} {request.path} - Error: {str(e)} - Duration: {process_time:.3f}s"
                )
                raise

        return trace


def with_tracing() -> TraceMiddleware:
    """Return a factory that assigns a trace ID and log context to each request."""
    return TraceMiddleware()
