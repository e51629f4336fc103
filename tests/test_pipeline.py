"""Tests for conduit.pipeline — composition, traversal, and error semantics."""

import asyncio
import logging
import threading

import pytest

from conduit.context import RequestContext, TraversalState
from conduit.errors import (
    ConduitError,
    ConfigurationError,
    DoubleInvocationError,
    HTTPError,
    StageExecutionError,
)
from conduit.pipeline import Handler, Pipeline
from conduit.testing import make_context


def marker(label: str):
    """Middleware writing ``<label>-in`` before and ``<label>-out`` after."""

    async def stage(ctx: RequestContext, next: Handler) -> None:
        ctx.write(f"{label}-in ")
        await next(ctx)
        ctx.write(f"{label}-out ")

    stage.__qualname__ = f"marker_{label}"
    return stage


def counting_terminal() -> tuple[Handler, list[RequestContext]]:
    calls: list[RequestContext] = []

    async def terminal(ctx: RequestContext) -> None:
        calls.append(ctx)

    return terminal, calls


class TestRegistration:
    def test_register_returns_stage(self) -> None:
        pipeline = Pipeline()

        @pipeline.register
        async def mw(ctx, next):
            await next(ctx)

        assert callable(mw)
        assert pipeline.stages == ("TestRegistration.test_register_returns_stage.<locals>.mw",)

    def test_constructor_accepts_stages(self) -> None:
        pipeline = Pipeline([marker("A"), marker("B")])
        assert len(pipeline) == 2

    def test_register_after_build_fails(self) -> None:
        pipeline = Pipeline()
        pipeline.build()
        with pytest.raises(ConfigurationError, match="after the pipeline has been built"):
            pipeline.register(marker("A"))

    def test_register_after_lazy_build_fails(self) -> None:
        pipeline = Pipeline()
        asyncio.run(pipeline.handle(make_context()))
        with pytest.raises(ConfigurationError):
            pipeline.register(marker("A"))

    @pytest.mark.parametrize("bad", [None, 42, "stage", int])
    def test_register_rejects_non_stages(self, bad: object) -> None:
        with pytest.raises(ConfigurationError):
            Pipeline().register(bad)

    def test_wrap_returning_non_callable_fails_at_build(self) -> None:
        class Broken:
            def wrap(self, next):
                return None

        pipeline = Pipeline([Broken()])
        with pytest.raises(ConfigurationError, match="expected a handler"):
            pipeline.build()

    def test_non_callable_wrap_attribute_rejected(self) -> None:
        class Odd:
            wrap = "nope"

        with pytest.raises(ConfigurationError, match="not callable"):
            Pipeline().register(Odd())

    def test_failed_build_leaves_pipeline_open(self) -> None:
        class Broken:
            def wrap(self, next):
                return None

        pipeline = Pipeline([Broken()])
        with pytest.raises(ConfigurationError):
            pipeline.build()
        assert pipeline.built is False
        pipeline.register(marker("A"))
        assert len(pipeline) == 2


class TestStageShapes:
    async def test_continuation_style(self) -> None:
        def greeting(next: Handler) -> Handler:
            async def handler(ctx: RequestContext) -> None:
                ctx.write("<h1>Hello from My First Middleware</h1>")
                await next(ctx)

            return handler

        ctx = make_context()
        await Pipeline([greeting]).handle(ctx)
        assert ctx.response.body == b"<h1>Hello from My First Middleware</h1>"

    async def test_interface_style(self) -> None:
        class Suffix:
            def __init__(self, text: str) -> None:
                self.text = text

            def wrap(self, next: Handler) -> Handler:
                async def handler(ctx: RequestContext) -> None:
                    await next(ctx)
                    ctx.write(self.text)

                return handler

        ctx = make_context()
        await Pipeline([Suffix("!")]).handle(ctx)
        assert ctx.response.body == b"!"
        assert Pipeline([Suffix("!")]).stages[0].endswith("Suffix")

    async def test_class_middleware_style(self) -> None:
        class Tag:
            async def __call__(self, ctx: RequestContext, next: Handler) -> None:
                ctx.items["tag"] = True
                await next(ctx)

        ctx = make_context()
        await Pipeline([Tag()]).handle(ctx)
        assert ctx.items["tag"] is True


class TestComposition:
    async def test_nested_order(self) -> None:
        pipeline = Pipeline([marker("A"), marker("B"), marker("C")])
        ctx = make_context()
        await pipeline.handle(ctx)
        assert ctx.response.body == b"A-in B-in C-in C-out B-out A-out "

    async def test_extension_bag_records_nesting(self) -> None:
        def stage(label: str):
            async def mw(ctx: RequestContext, next: Handler) -> None:
                ctx.items.setdefault("log", []).append(f"{label}-in")
                await next(ctx)
                ctx.items["log"].append(f"{label}-out")

            return mw

        ctx = make_context()
        await Pipeline([stage("A"), stage("B"), stage("C")]).handle(ctx)
        assert " ".join(ctx.items["log"]) == "A-in B-in C-in C-out B-out A-out"

    async def test_short_circuit_skips_terminal(self) -> None:
        terminal, calls = counting_terminal()

        async def only(ctx: RequestContext, next: Handler) -> None:
            ctx.write("only")

        ctx = make_context()
        await Pipeline([only], terminal=terminal).handle(ctx)
        assert ctx.response.body == b"only"
        assert calls == []
        assert ctx.state is TraversalState.COMPLETED
        assert ctx.stage_index == 0

    async def test_short_circuit_skips_later_stages(self) -> None:
        async def stop(ctx: RequestContext, next: Handler) -> None:
            ctx.status = 401

        ctx = make_context()
        await Pipeline([marker("A"), stop, marker("C")]).handle(ctx)
        assert ctx.response.body == b"A-in A-out "
        assert ctx.status == 401
        assert ctx.stage_index == 1

    async def test_terminal_reached_once(self) -> None:
        terminal, calls = counting_terminal()
        ctx = make_context()
        await Pipeline([marker("A"), marker("B")], terminal=terminal).handle(ctx)
        assert calls == [ctx]
        assert ctx.stage_index == 1

    async def test_empty_pipeline_writes_nothing(self) -> None:
        pipeline = Pipeline()
        ctx = make_context()
        await pipeline.handle(ctx)
        assert ctx.response.bytes_written == 0
        assert ctx.status is None
        assert ctx.state is TraversalState.COMPLETED

    async def test_empty_pipeline_build_is_terminal(self) -> None:
        terminal, calls = counting_terminal()
        handler = Pipeline(terminal=terminal).build()
        assert handler is terminal

    async def test_build_is_idempotent(self) -> None:
        pipeline = Pipeline([marker("A"), marker("B")])
        first = pipeline.build()
        second = pipeline.build()
        assert first is not second
        assert pipeline.stages == ("marker_A", "marker_B")

        ctx1, ctx2 = make_context(), make_context()
        await first(ctx1)
        await second(ctx2)
        assert ctx1.response.body == ctx2.response.body == b"A-in B-in B-out A-out "

    async def test_handle_uses_first_built_handler(self) -> None:
        pipeline = Pipeline([marker("A")])
        pipeline.build()
        ctx = make_context()
        await pipeline.handle(ctx)
        assert ctx.response.body == b"A-in A-out "

    async def test_context_cannot_be_reused(self) -> None:
        pipeline = Pipeline()
        ctx = make_context()
        await pipeline.handle(ctx)
        with pytest.raises(ConduitError, match="already been through"):
            await pipeline.handle(ctx)

    async def test_current_context_visible_to_stages(self) -> None:
        from conduit.context import current_context

        seen: list[RequestContext] = []

        async def peek(ctx: RequestContext, next: Handler) -> None:
            seen.append(current_context())
            await next(ctx)

        ctx = make_context()
        await Pipeline([peek]).handle(ctx)
        assert seen == [ctx]
        with pytest.raises(LookupError):
            current_context()


class TestErrors:
    async def test_stage_error_wrapped(self) -> None:
        async def boom(ctx: RequestContext, next: Handler) -> None:
            raise ValueError("bad input")

        pipeline = Pipeline([marker("A"), boom])
        with pytest.raises(StageExecutionError) as exc_info:
            await pipeline.handle(make_context())
        err = exc_info.value
        assert err.index == 1
        assert "boom" in err.stage
        assert isinstance(err.__cause__, ValueError)
        assert "bad input" in str(err)

    async def test_error_wrapped_once(self) -> None:
        async def boom(ctx: RequestContext, next: Handler) -> None:
            raise RuntimeError("deep")

        pipeline = Pipeline([marker("A"), marker("B"), boom])
        with pytest.raises(StageExecutionError) as exc_info:
            await pipeline.handle(make_context())
        assert exc_info.value.index == 2
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_stage_execution_error_propagates_unchanged(self) -> None:
        original = StageExecutionError("custom", 7, "raised by hand")

        async def raiser(ctx: RequestContext, next: Handler) -> None:
            raise original

        with pytest.raises(StageExecutionError) as exc_info:
            await Pipeline([raiser]).handle(make_context())
        assert exc_info.value is original

    async def test_http_error_not_wrapped(self) -> None:
        async def forbid(ctx: RequestContext, next: Handler) -> None:
            raise HTTPError(403, "nope")

        with pytest.raises(HTTPError) as exc_info:
            await Pipeline([forbid]).handle(make_context())
        assert exc_info.value.status == 403

    async def test_error_in_after_logic(self) -> None:
        async def late(ctx: RequestContext, next: Handler) -> None:
            await next(ctx)
            raise KeyError("missing")

        with pytest.raises(StageExecutionError) as exc_info:
            await Pipeline([late, marker("B")]).handle(make_context())
        assert exc_info.value.index == 0

    async def test_failure_log_names_failing_stage(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        async def late(ctx: RequestContext, next: Handler) -> None:
            await next(ctx)
            raise KeyError("missing")

        with caplog.at_level(logging.DEBUG, logger="conduit.pipeline"):
            with pytest.raises(StageExecutionError):
                await Pipeline([late, marker("B")]).handle(make_context())
        messages = [r.getMessage() for r in caplog.records if r.name == "conduit.pipeline"]
        assert any("failed in stage #0" in m for m in messages)

    async def test_double_invocation(self) -> None:
        terminal, calls = counting_terminal()

        async def twice(ctx: RequestContext, next: Handler) -> None:
            await next(ctx)
            await next(ctx)

        with pytest.raises(DoubleInvocationError) as exc_info:
            await Pipeline([twice], terminal=terminal).handle(make_context())
        assert exc_info.value.index == 0
        assert len(calls) == 1

    async def test_double_invocation_not_swallowed_by_outer_stage(self) -> None:
        async def twice(ctx: RequestContext, next: Handler) -> None:
            await next(ctx)
            await next(ctx)

        with pytest.raises(DoubleInvocationError):
            await Pipeline([marker("A"), twice, marker("C")]).handle(make_context())

    async def test_double_invocation_survives_catch_all(self) -> None:
        async def catch_all(ctx: RequestContext, next: Handler) -> None:
            try:
                await next(ctx)
            except Exception:
                pass

        async def twice(ctx: RequestContext, next: Handler) -> None:
            ctx.write("x")
            await next(ctx)
            await next(ctx)

        ctx = make_context()
        with pytest.raises(DoubleInvocationError) as exc_info:
            await Pipeline([catch_all, twice]).handle(ctx)
        assert exc_info.value.index == 1
        assert ctx.state is TraversalState.COMPLETED

    async def test_guard_is_per_request(self) -> None:
        pipeline = Pipeline([marker("A")])
        for _ in range(3):
            await pipeline.handle(make_context())

    async def test_resources_released_on_error(self) -> None:
        async def boom(ctx: RequestContext, next: Handler) -> None:
            raise RuntimeError

        ctx = make_context(body=b"payload")
        with pytest.raises(StageExecutionError):
            await Pipeline([boom]).handle(ctx)
        assert ctx.body.closed
        assert ctx.response.closed
        assert ctx.state is TraversalState.COMPLETED

    async def test_cancellation_passes_through(self) -> None:
        started = asyncio.Event()

        async def slow(ctx: RequestContext, next: Handler) -> None:
            started.set()
            await asyncio.sleep(10)

        ctx = make_context()
        task = asyncio.create_task(Pipeline([slow]).handle(ctx))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert ctx.body.closed


class TestConcurrency:
    async def test_concurrent_requests_are_isolated(self) -> None:
        async def tag(ctx: RequestContext, next: Handler) -> None:
            ctx.items["who"] = ctx.path
            await asyncio.sleep(0)
            await next(ctx)

        async def echo(ctx: RequestContext, next: Handler) -> None:
            await asyncio.sleep(0.001 * (hash(ctx.path) % 5))
            ctx.write(f"{ctx.items['who']}|{ctx.path}")
            await next(ctx)

        pipeline = Pipeline([tag, marker("M"), echo])
        contexts = [make_context(path=f"/r{i}") for i in range(50)]
        await asyncio.gather(*(pipeline.handle(ctx) for ctx in contexts))

        for i, ctx in enumerate(contexts):
            assert ctx.response.body == f"M-in /r{i}|/r{i}M-out ".encode()
            assert ctx.items["who"] == f"/r{i}"

    def test_lazy_build_happens_once_across_threads(self) -> None:
        pipeline = Pipeline([marker("A")])
        barrier = threading.Barrier(8)
        handlers: list[object] = []

        def worker() -> None:
            barrier.wait()
            handlers.append(pipeline._ensure_built())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(h) for h in handlers}) == 1
