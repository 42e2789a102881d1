"""Middleware pipeline composition.

A pipeline is an ordered list of middleware factories around a terminal
handler. Each factory receives the handler built from everything after it
and returns the handler for its own position, so the first factory becomes
the outermost layer::

    handler = compose([with_tracing(), with_authorization()], not_found)
    response = await handler(RequestContext(path="/dashboard"))

Composition happens once, at startup. The composed handler keeps no
per-request state and can be awaited concurrently from any number of tasks.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Iterable, List, Optional, Protocol, Tuple, Union

from middleware_pipeline.src.core.exceptions.exceptions import (
    AppException,
    ConfigurationError,
    HandlerError,
)
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.utils.pylogger import get_python_logger

logger = get_python_logger(__name__)

AsyncHandler = Callable[[RequestContext], Awaitable[PipelineResponse]]
Handler = Callable[
    [RequestContext], Union[PipelineResponse, Awaitable[PipelineResponse]]
]


class MiddlewareFactory(Protocol):
    """Anything that wraps the next handler and returns a new handler."""

    def __call__(self, next_handler: AsyncHandler) -> Handler: ...


def stage_name(obj: object) -> str:
    """Readable name of a factory or handler for logs and error messages."""
    return getattr(obj, "__name__", None) or type(obj).__name__


def _bind(handler: Handler, name: str) -> AsyncHandler:
    """Turn a sync or async handler into an awaitable layer that checks its result."""

    async def layer(request: RequestContext) -> PipelineResponse:
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, PipelineResponse):
            hint = (
                "; a builder may have been passed to compose without calling it"
                if callable(result)
                else ""
            )
            raise HandlerError(
                f"Handler {name} produced {type(result).__name__} instead of a PipelineResponse{hint}"
            )
        return result

    layer.__name__ = name
    return layer


class Pipeline:
    """Ordered, inspectable sequence of middleware factories.

    Factories are validated as they are added; :meth:`build` folds them
    right-to-left around the terminal handler and returns one async handler.

    Args:
        factories: Middleware factories, outermost first.
        terminal_handler: Handler invoked when every factory has delegated.
    """

    def __init__(
        self,
        factories: Optional[Iterable[MiddlewareFactory]] = None,
        terminal_handler: Optional[Handler] = None,
    ):
        self._factories: List[MiddlewareFactory] = []
        self._terminal_handler = terminal_handler
        if factories is None:
            return
        try:
            factories = list(factories)
        except TypeError as e:
            raise ConfigurationError(
                f"Middleware factories must be an ordered sequence, got {type(factories).__name__}"
            ) from e
        for factory in factories:
            self.use(factory)

    def use(self, factory: MiddlewareFactory) -> Pipeline:
        """Append a factory as the new innermost stage."""
        if not callable(factory):
            raise ConfigurationError(
                f"Middleware factory at position {len(self._factories)} is not callable: {factory!r}"
            )
        self._factories.append(factory)
        return self

    def terminate_with(self, terminal_handler: Handler) -> Pipeline:
        self._terminal_handler = terminal_handler
        return self

    @property
    def stages(self) -> Tuple[MiddlewareFactory, ...]:
        return tuple(self._factories)

    @property
    def names(self) -> List[str]:
        return [stage_name(factory) for factory in self._factories]

    @property
    def terminal_handler(self) -> Optional[Handler]:
        return self._terminal_handler

    def __len__(self) -> int:
        return len(self._factories)

    def __repr__(self) -> str:
        terminal = (
            stage_name(self._terminal_handler) if self._terminal_handler else None
        )
        return f"Pipeline(stages={self.names}, terminal={terminal})"

    def build(self) -> AsyncHandler:
        """Compose the stages into a single handler.

        Raises:
            ConfigurationError: If the terminal handler is missing or not
                callable, or a factory raises or returns something that is not
                a handler.
        """
        terminal = self._terminal_handler
        if terminal is None or not callable(terminal):
            raise ConfigurationError(
                f"Terminal handler must be callable, got {terminal!r}"
            )

        handler = _bind(terminal, stage_name(terminal))
        for position in range(len(self._factories) - 1, -1, -1):
            factory = self._factories[position]
            name = stage_name(factory)
            try:
                wrapped = factory(handler)
            except ConfigurationError:
                raise
            except Exception as e:
                raise ConfigurationError(
                    f"Middleware factory {name} at position {position} failed while "
                    f"wrapping the next handler: {e!r}; if {name} is a builder, "
                    f"pass {name}() instead"
                ) from e
            if not callable(wrapped):
                raise ConfigurationError(
                    f"Middleware factory {name} at position {position} returned "
                    f"{type(wrapped).__name__} instead of a handler"
                )
            handler = _bind(wrapped, name)

        logger.info(
            "Composed pipeline with %s stages: %s -> %s",
            len(self._factories),
            " -> ".join(self.names) or "<none>",
            stage_name(terminal),
        )
        return _outermost(handler)


def _outermost(head: AsyncHandler) -> AsyncHandler:
    """Boundary that reports every request-time failure as HandlerError.

    The original exception is chained as ``__cause__``. An ``AppException``
    keeps its status and error code in the wrapper. Inner layers always see
    the original exception.
    """

    async def pipeline_handler(request: RequestContext) -> PipelineResponse:
        try:
            return await head(request)
        except HandlerError:
            raise
        except Exception as e:
            logger.error(
                "Pipeline failed for request_method=%s, request_path=%s, error=%s",
                request.method,
                request.path,
                e,
            )
            if isinstance(e, AppException):
                raise HandlerError(e.detail_message, e.app_exception_code) from e
            raise HandlerError(f"Request handling failed: {e}") from e

    return pipeline_handler


def compose(
    factories: Optional[Iterable[MiddlewareFactory]],
    terminal_handler: Handler,
) -> AsyncHandler:
    """Compose ``factories`` around ``terminal_handler`` into one async handler.

    ``factories[0]`` runs first; the ``next`` it receives behaves exactly like
    ``compose(factories[1:], terminal_handler)``. An empty sequence yields a
    handler equivalent to ``terminal_handler``.

    Raises:
        ConfigurationError: At composition time, if any factory or the
            terminal handler is not callable, or a factory fails to wrap
            its next handler.
    """
    return Pipeline(factories, terminal_handler).build()
