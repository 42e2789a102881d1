"""Catch-all route that serves requests through the composed pipeline.

The application stores its composed handler on ``app.state.pipeline_handler``
at startup; this route converts between Starlette objects and the pipeline's
``RequestContext``/``PipelineResponse`` values around each call.
"""

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from middleware_pipeline.src.core.exceptions.exceptions import ConfigurationError
from middleware_pipeline.src.schema import PipelineResponse, RequestContext

router = APIRouter()

PIPELINE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def to_request_context(request: Request) -> RequestContext:
    return RequestContext(
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params),
        raw_query=request.url.query,
        headers=dict(request.headers),
        cookies=dict(request.cookies),
    )


def to_starlette_response(response: PipelineResponse) -> Response:
    """Render a pipeline response; dict and list bodies are sent as JSON."""
    if response.is_redirect:
        headers = {k: v for k, v in response.headers.items() if k != "location"}
        return RedirectResponse(
            url=response.location, status_code=response.status_code, headers=headers
        )

    if isinstance(response.body, (dict, list)):
        return JSONResponse(
            content=response.body,
            status_code=response.status_code,
            headers=response.headers,
        )

    body = response.body
    if body is None:
        body = b""
    elif not isinstance(body, (bytes, str)):
        body = str(body)
    return Response(
        content=body,
        status_code=response.status_code,
        headers=response.headers,
        media_type=response.media_type or "text/plain",
    )


@router.api_route("/{full_path:path}", methods=PIPELINE_METHODS, include_in_schema=False)
async def serve(full_path: str, request: Request) -> Response:
    handler = getattr(request.app.state, "pipeline_handler", None)
    if handler is None:
        raise ConfigurationError("No pipeline handler installed on the application")

    response = await handler(to_request_context(request))
    return to_starlette_response(response)
