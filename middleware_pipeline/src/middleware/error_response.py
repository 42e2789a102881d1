"""Stage that turns errors from deeper layers into JSON error responses."""

from __future__ import annotations

from middleware_pipeline.src.core.exceptions.exceptions import AppException, AppExceptionCode
from middleware_pipeline.src.core.pipeline import AsyncHandler, MiddlewareFactory
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.utils.pylogger import get_python_logger

logger = get_python_logger(__name__)


def with_error_response() -> MiddlewareFactory:
    """Return a factory that answers failed requests instead of raising.

    ``AppException`` keeps its own status and error code; anything else
    becomes a 500 ``INTERNAL_SERVER_ERROR`` response.
    """

    def error_response(next_handler: AsyncHandler) -> AsyncHandler:
        async def respond_on_error(request: RequestContext) -> PipelineResponse:
            try:
                return await next_handler(request)
            except AppException as e:
                logger.warning(
                    "App exception occurred for request_method=%s, request_path=%s, error=%s",
                    request.method,
                    request.path,
                    e,
                )
                return PipelineResponse(status_code=e.response_code, body=e.to_dict())
            except Exception as e:
                logger.exception(
                    "Unhandled exception occurred for request_method=%s, request_path=%s, error=%s",
                    request.method,
                    request.path,
                    e,
                )
                code = AppExceptionCode.INTERNAL_SERVER_ERROR
                return PipelineResponse(
                    status_code=code.response_code,
                    body={
                        "detail_message": str(e),
                        "message": code.message,
                        "error_code": code.error_code,
                    },
                )

        return respond_on_error

    return error_response
