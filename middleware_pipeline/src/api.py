"""FastAPI server implementation for the middleware pipeline service.

This module composes the default request pipeline once, at import, installs
it behind a catch-all route and registers the exception handlers that turn
pipeline failures into JSON error responses.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from middleware_pipeline.src.core.exceptions.exceptions import AppException, AppExceptionCode
from middleware_pipeline.src.core.pipeline import Handler, MiddlewareFactory, Pipeline
from middleware_pipeline.src.middleware import (
    with_authorization,
    with_locale,
    with_request_logging,
    with_tracing,
)
from middleware_pipeline.src.routes.health import router as health_router
from middleware_pipeline.src.routes.pipeline import router as pipeline_router
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.src.settings import settings
from middleware_pipeline.utils.pylogger import configure_logging, get_python_logger

configure_logging(log_level=settings.PYTHON_LOG_LEVEL)

logger = get_python_logger(__name__)


def default_terminal_handler(request: RequestContext) -> PipelineResponse:
    """Answer requests that every stage delegated."""
    return PipelineResponse(
        body={
            "status": "ok",
            "path": request.path,
            "locale": request.state.get("locale"),
        }
    )


def default_factories() -> list:
    return [
        with_tracing(),
        with_request_logging(),
        with_authorization(),
        with_locale(),
    ]


def create_app(
    factories: Optional[Iterable[MiddlewareFactory]] = None,
    terminal_handler: Optional[Handler] = None,
) -> FastAPI:
    """Build the application around a freshly composed pipeline.

    Raises:
        ConfigurationError: If the pipeline cannot be composed.
    """
    pipeline = Pipeline(
        default_factories() if factories is None else factories,
        terminal_handler or default_terminal_handler,
    )
    pipeline_handler = pipeline.build()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Pipeline server starting up with %r", pipeline)
        yield
        logger.info("Pipeline server shutting down")

    app = FastAPI(lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.pipeline_handler = pipeline_handler
    app.logger = logger

    # Health first so the catch-all route never shadows it
    app.include_router(health_router)
    app.include_router(pipeline_router)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    return app


async def generic_exception_handler(request: Request, exc: Exception):
    """Generic exception handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception occurred for request_method=%s, request_path=%s, error=%s",
        request.method,
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=AppExceptionCode.INTERNAL_SERVER_ERROR.response_code,
        content={
            "detail_message": str(exc),
            "message": AppExceptionCode.INTERNAL_SERVER_ERROR.message,
            "error_code": AppExceptionCode.INTERNAL_SERVER_ERROR.error_code,
        },
    )


async def app_exception_handler(request: Request, exc: AppException):
    """App exception handler, covers HandlerError raised by the pipeline."""
    logger.warning(
        "App exception occurred for request_method=%s, request_path=%s, error=%s",
        request.method,
        request.url.path,
        exc,
    )
    logger.debug("App exception cause for request=%s: %r", request, exc.__cause__)
    return JSONResponse(status_code=exc.response_code, content=exc.to_dict())


app = create_app()
