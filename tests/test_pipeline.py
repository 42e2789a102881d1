"""Tests for the pipeline composition module."""

import asyncio

import pytest

from middleware_pipeline.src.core.exceptions.exceptions import (
    AppException,
    AppExceptionCode,
    ConfigurationError,
    HandlerError,
)
from middleware_pipeline.src.core.pipeline import Pipeline, compose, stage_name
from middleware_pipeline.src.middleware import (
    with_authorization,
    with_error_response,
    with_locale,
    with_request_logging,
    with_tracing,
)
from middleware_pipeline.src.schema import PipelineResponse, RequestContext


def recording_factory(name, calls):
    """Factory that records its name and delegates."""

    def factory(next_handler):
        async def handler(request):
            calls.append(name)
            return await next_handler(request)

        return handler

    factory.__name__ = name
    factory.__qualname__ = name
    return factory


def recording_terminal(calls, body="ok"):
    def terminal(request):
        calls.append("terminal")
        return PipelineResponse(body=body)

    return terminal


class TestCompositionOrder:
    """Test cases for the order in which composed stages run."""

    @pytest.mark.asyncio
    async def test_factories_run_in_sequence_order(self):
        """Test that the first factory is outermost and the terminal runs last."""
        calls = []
        handler = compose(
            [recording_factory(name, calls) for name in ("f0", "f1", "f2")],
            recording_terminal(calls),
        )

        response = await handler(RequestContext(path="/"))

        assert calls == ["f0", "f1", "f2", "terminal"]
        assert response.body == "ok"

    @pytest.mark.asyncio
    async def test_next_of_first_factory_behaves_like_composed_remainder(self):
        """Test that f0 receives a handler equivalent to compose(f1..fn, T)."""
        captured = {}

        def f0(next_handler):
            captured["next"] = next_handler
            return next_handler

        remainder_calls = []
        captured_calls = []
        remainder = compose(
            [recording_factory("f1", remainder_calls)],
            recording_terminal(remainder_calls),
        )
        compose(
            [f0, recording_factory("f1", captured_calls)],
            recording_terminal(captured_calls),
        )

        expected = await remainder(RequestContext(path="/x"))
        actual = await captured["next"](RequestContext(path="/x"))

        assert actual == expected
        assert captured_calls == remainder_calls == ["f1", "terminal"]

    @pytest.mark.asyncio
    async def test_empty_sequence_is_the_terminal_handler(self):
        """Test that compose([], T) returns exactly what T returns."""
        fixed = PipelineResponse(status_code=202, body={"fixed": True})
        handler = compose([], lambda request: fixed)

        for path in ("/", "/anything", "/login"):
            assert await handler(RequestContext(path=path)) is fixed

    @pytest.mark.asyncio
    async def test_none_factories_is_treated_as_empty(self):
        """Test that a missing factory sequence composes to the terminal handler."""
        calls = []
        handler = compose(None, recording_terminal(calls))

        await handler(RequestContext())

        assert calls == ["terminal"]

    @pytest.mark.asyncio
    async def test_factories_are_invoked_once_at_construction(self):
        """Test that factories wrap once and never again per request."""
        invocations = []

        def factory(next_handler):
            invocations.append(next_handler)
            return next_handler

        handler = compose([factory], lambda request: PipelineResponse(body="ok"))
        assert len(invocations) == 1

        for _ in range(3):
            await handler(RequestContext())

        assert len(invocations) == 1

    @pytest.mark.asyncio
    async def test_each_factory_runs_once_per_request(self):
        """Test that no stage runs twice for a single request."""
        calls = []
        handler = compose(
            [recording_factory("a", calls), recording_factory("b", calls)],
            recording_terminal(calls),
        )

        await handler(RequestContext())
        await handler(RequestContext())

        assert calls == ["a", "b", "terminal", "a", "b", "terminal"]


class TestShortCircuit:
    """Test cases for stages that answer without delegating."""

    @pytest.mark.asyncio
    async def test_short_circuit_skips_deeper_stages(self):
        """Test that returning without next stops the pipeline."""
        calls = []

        def blocker(next_handler):
            async def handler(request):
                calls.append("blocker")
                return PipelineResponse(status_code=403, body="blocked")

            return handler

        handler = compose(
            [recording_factory("outer", calls), blocker, recording_factory("inner", calls)],
            recording_terminal(calls),
        )

        response = await handler(RequestContext(path="/secret"))

        assert response.status_code == 403
        assert calls == ["outer", "blocker"]

    @pytest.mark.asyncio
    async def test_logging_and_login_redirect_scenario(self, ok_handler):
        """Test a logging stage followed by a redirecting stage."""
        log = []

        def logging_stage(next_handler):
            async def handler(request):
                log.append(request.path)
                return await next_handler(request)

            return handler

        def login_redirect(next_handler):
            async def handler(request):
                if "login" in request.path:
                    return PipelineResponse.redirect("/auth")
                return await next_handler(request)

            return handler

        handler = compose([logging_stage, login_redirect], ok_handler)

        redirected = await handler(RequestContext(path="/login"))
        assert redirected.is_redirect
        assert redirected.location == "/auth"
        assert ok_handler.calls == []

        log.clear()
        response = await handler(RequestContext(path="/home"))
        assert response.body == "ok"
        assert log == ["/home"]
        assert len(ok_handler.calls) == 1


class TestTransformation:
    """Test cases for stages that transform requests and responses."""

    @pytest.mark.asyncio
    async def test_stage_can_transform_request_and_response(self):
        """Test before and after delegation changes."""

        def prefix_path(next_handler):
            async def handler(request):
                response = await next_handler(request.with_path("/v1" + request.path))
                response.headers["x-rewritten"] = "true"
                return response

            return handler

        handler = compose(
            [prefix_path], lambda request: PipelineResponse(body=request.path)
        )

        response = await handler(RequestContext(path="/items"))

        assert response.body == "/v1/items"
        assert response.headers["x-rewritten"] == "true"

    @pytest.mark.asyncio
    async def test_sync_handlers_from_factories_are_awaitable(self):
        """Test that synchronous handlers can sit anywhere in the pipeline."""

        def sync_factory(next_handler):
            def handler(request):
                return PipelineResponse(body="sync")

            return handler

        handler = compose([sync_factory], lambda request: PipelineResponse(body="never"))

        response = await handler(RequestContext())

        assert response.body == "sync"

    @pytest.mark.asyncio
    async def test_async_terminal_handler(self):
        """Test an async terminal handler."""

        async def terminal(request):
            await asyncio.sleep(0)
            return PipelineResponse(body="async")

        response = await compose([], terminal)(RequestContext())

        assert response.body == "async"


class TestDeterminism:
    """Test cases for repeated compositions."""

    @pytest.mark.asyncio
    async def test_composing_twice_gives_identical_responses(self):
        """Test that two compositions of the same stages agree."""

        def tag(next_handler):
            async def handler(request):
                response = await next_handler(request)
                response.headers["x-tag"] = request.path
                return response

            return handler

        def terminal(request):
            return PipelineResponse(body={"path": request.path})

        first = compose([tag], terminal)
        second = compose([tag], terminal)
        request = RequestContext(path="/same", headers={"Accept": "text/html"})

        assert await first(request) == await second(request)

    @pytest.mark.asyncio
    async def test_concurrent_invocations_do_not_share_state(self):
        """Test that interleaved requests keep their own values."""

        def stash(next_handler):
            async def handler(request):
                request = request.with_state(seen=request.path)
                await asyncio.sleep(0.01 if request.path == "/slow" else 0)
                return await next_handler(request)

            return handler

        handler = compose(
            [stash], lambda request: PipelineResponse(body=request.state["seen"])
        )

        slow, fast = await asyncio.gather(
            handler(RequestContext(path="/slow")),
            handler(RequestContext(path="/fast")),
        )

        assert slow.body == "/slow"
        assert fast.body == "/fast"


class TestConfigurationErrors:
    """Test cases for errors raised at composition time."""

    def test_non_callable_factory(self):
        """Test that a non-callable factory fails composition."""
        with pytest.raises(ConfigurationError) as exc_info:
            compose([lambda n: n, "not-a-factory"], lambda request: PipelineResponse())

        assert "position 1" in exc_info.value.detail_message
        assert exc_info.value.error_code == "E_006"

    def test_factory_returning_non_handler(self):
        """Test that a factory must return a callable handler."""
        with pytest.raises(ConfigurationError) as exc_info:
            compose([lambda next_handler: None], lambda request: PipelineResponse())

        assert "NoneType" in exc_info.value.detail_message

    def test_missing_terminal_handler(self):
        """Test that a terminal handler is required."""
        with pytest.raises(ConfigurationError):
            compose([], None)

    def test_non_callable_terminal_handler(self):
        """Test that the terminal handler must be callable."""
        with pytest.raises(ConfigurationError):
            compose([], PipelineResponse())

    def test_non_iterable_factories(self):
        """Test that factories must be a sequence."""
        with pytest.raises(ConfigurationError):
            compose(42, lambda request: PipelineResponse())

    def test_failing_factory_is_configuration_error(self):
        """Test that an exception raised by a factory is reported at composition."""

        def broken(next_handler):
            raise RuntimeError("cannot wrap")

        with pytest.raises(ConfigurationError) as exc_info:
            compose([broken], lambda request: PipelineResponse())

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "broken" in exc_info.value.detail_message
        assert "position 0" in exc_info.value.detail_message

    @pytest.mark.parametrize(
        "builder",
        [
            with_tracing,
            with_request_logging,
            with_authorization,
            with_locale,
            with_error_response,
        ],
    )
    def test_uncalled_builder_fails_composition(self, builder):
        """Test that passing a built-in builder without calling it is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            compose([builder], lambda request: PipelineResponse())

        assert exc_info.value.error_code == "E_006"

    @pytest.mark.asyncio
    async def test_handler_returning_callable_mentions_builder(self):
        """Test that a stage producing a function hints at an uncalled builder."""

        def builder(next_handler):
            def factory(request):
                return next_handler

            return factory

        handler = compose([builder], lambda request: PipelineResponse())

        with pytest.raises(HandlerError) as exc_info:
            await handler(RequestContext())

        assert "without calling it" in exc_info.value.detail_message

    def test_use_validates_immediately(self):
        """Test that Pipeline.use rejects non-callables before build."""
        pipeline = Pipeline()

        with pytest.raises(ConfigurationError):
            pipeline.use(object())

        assert len(pipeline) == 0


class TestRequestTimeErrors:
    """Test cases for errors raised while handling a request."""

    @pytest.mark.asyncio
    async def test_terminal_error_reaches_caller_as_handler_error(self):
        """Test that a failing terminal handler surfaces as HandlerError."""

        def terminal(request):
            raise ValueError("boom")

        handler = compose([], terminal)

        with pytest.raises(HandlerError) as exc_info:
            await handler(RequestContext())

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert "boom" in exc_info.value.detail_message
        assert exc_info.value.response_code == 500

    @pytest.mark.asyncio
    async def test_inner_stage_sees_original_exception(self):
        """Test that a factory can catch the original error and answer normally."""

        def recover(next_handler):
            async def handler(request):
                try:
                    return await next_handler(request)
                except KeyError:
                    return PipelineResponse(status_code=404, body="missing")

            return handler

        def terminal(request):
            raise KeyError("item")

        response = await compose([recover], terminal)(RequestContext())

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_app_exception_is_wrapped_keeping_its_code(self):
        """Test that application exceptions surface as HandlerError with their own code."""
        error = AppException("no such page", AppExceptionCode.NOT_FOUND_ERROR)

        def terminal(request):
            raise error

        with pytest.raises(HandlerError) as exc_info:
            await compose([], terminal)(RequestContext())

        assert exc_info.value.__cause__ is error
        assert exc_info.value.response_code == 404
        assert exc_info.value.error_code == "E_002"
        assert exc_info.value.detail_message == "no such page"

    @pytest.mark.asyncio
    async def test_handler_error_is_not_wrapped_twice(self):
        """Test that a HandlerError raised by a stage reaches the caller as is."""
        error = HandlerError("stage failed")

        def terminal(request):
            raise error

        with pytest.raises(HandlerError) as exc_info:
            await compose([], terminal)(RequestContext())

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_non_response_result_is_handler_error(self):
        """Test that a handler must produce a PipelineResponse."""
        handler = compose([], lambda request: "plain string")

        with pytest.raises(HandlerError) as exc_info:
            await handler(RequestContext())

        assert "str" in exc_info.value.detail_message

    @pytest.mark.asyncio
    async def test_cancellation_is_not_wrapped(self):
        """Test that cancellation propagates untouched."""

        async def terminal(request):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await compose([], terminal)(RequestContext())


class TestPipelineStructure:
    """Test cases for the inspectable Pipeline object."""

    def test_use_is_fluent_and_ordered(self):
        """Test that stages keep insertion order."""
        calls = []
        first = recording_factory("first", calls)
        second = recording_factory("second", calls)

        pipeline = Pipeline().use(first).use(second)

        assert pipeline.stages == (first, second)
        assert pipeline.names == ["first", "second"]
        assert len(pipeline) == 2

    def test_repr_names_stages_and_terminal(self):
        """Test the readable representation."""
        calls = []
        pipeline = Pipeline(
            [recording_factory("outer", calls)], recording_terminal(calls)
        )

        assert "outer" in repr(pipeline)
        assert "terminal" in repr(pipeline)

    @pytest.mark.asyncio
    async def test_terminate_with_then_build(self):
        """Test setting the terminal handler after construction."""
        pipeline = Pipeline().terminate_with(lambda request: PipelineResponse(body="t"))

        response = await pipeline.build()(RequestContext())

        assert response.body == "t"

    def test_stage_name_for_callable_instance(self):
        """Test that instances are named after their class."""

        class Stage:
            def __call__(self, next_handler):
                return next_handler

        assert stage_name(Stage()) == "Stage"
