"""The Pipeline — ordered stages folded into one composed handler.

Mutable during setup (stage registration).  Frozen by the first
``build()``; after that, every request runs through the same composed
handler, which holds no per-request state.

Composition is a right fold::

    handler = s0(s1(...sn-1(terminal)...))

so "before" logic runs in registration order and anything a stage does
after awaiting its continuation runs in reverse order.
"""

import logging
import threading
from collections.abc import Iterable
from typing import TypeVar

from conduit.context import RequestContext, TraversalState, context_var
from conduit.errors import (
    ConduitError,
    ConfigurationError,
    DoubleInvocationError,
    StageExecutionError,
)
from conduit.pipeline.protocol import Handler, NamedStage, as_stage

S = TypeVar("S")

logger = logging.getLogger("conduit.pipeline")


async def noop_terminal(ctx: RequestContext) -> None:
    """End of the chain. Writes nothing and returns immediately."""


class Pipeline:
    """An ordered sequence of stages.

    Usage::

        pipeline = Pipeline()
        pipeline.register(request_id_stage)
        pipeline.register(greeting)

        await pipeline.handle(ctx)

    Thread safety:
        Registration happens during single-threaded setup.  The build
        transition uses a Lock + double-check so exactly one composed
        handler is cached even if several workers hit ``handle()`` on
        their first request at once.
    """

    __slots__ = ("_build_lock", "_built", "_handler", "_stages", "_terminal")

    def __init__(
        self,
        stages: Iterable[object] = (),
        *,
        terminal: Handler | None = None,
    ) -> None:
        self._stages: list[NamedStage] = []
        self._terminal: Handler = terminal if terminal is not None else noop_terminal
        self._built = False
        self._handler: Handler | None = None
        self._build_lock = threading.Lock()
        for stage in stages:
            self.register(stage)

    # -- Registration --

    def register(self, stage: S) -> S:
        """Append *stage* to the pipeline.

        Returns *stage* unchanged so this also works as a decorator.
        Raises ``ConfigurationError`` once the pipeline has been built.
        """
        if self._built:
            msg = (
                "Cannot register stages after the pipeline has been built. "
                "Register every stage before serving requests."
            )
            raise ConfigurationError(msg)
        self._stages.append(as_stage(stage))
        return stage

    @property
    def stages(self) -> tuple[str, ...]:
        """Registered stage names, in registration order."""
        return tuple(s.name for s in self._stages)

    @property
    def built(self) -> bool:
        return self._built

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"Pipeline({list(self.stages)!r}, built={self._built})"

    # -- Composition --

    def build(self) -> Handler:
        """Fold the registered stages into one composed handler.

        Each call returns a fresh, equivalent handler and leaves the stage
        list untouched.  The first successful call freezes the pipeline.
        """
        handler = self._terminal
        for index in reversed(range(len(self._stages))):
            handler = self._compose(index, self._stages[index], handler)
        self._built = True
        if self._handler is None:
            self._handler = handler
        logger.debug("pipeline built with %d stage(s): %s", len(self._stages), self.stages)
        return handler

    def _ensure_built(self) -> Handler:
        handler = self._handler
        if handler is not None:
            return handler
        with self._build_lock:
            if self._handler is None:
                return self.build()
            return self._handler

    @staticmethod
    def _compose(index: int, stage: NamedStage, downstream: Handler) -> Handler:
        """Wrap one stage around *downstream* and guard both directions.

        The continuation handed to the stage refuses a second call within
        the same request; the entry point records traversal state and turns
        stray exceptions from the stage's own logic into
        ``StageExecutionError``.
        """
        name = stage.name

        async def continuation(ctx: RequestContext) -> None:
            if index in ctx._advanced:
                # Recorded so an outer stage cannot swallow it
                ctx._violation = DoubleInvocationError(name, index)
                raise ctx._violation
            ctx._advanced.add(index)
            await downstream(ctx)

        inner = stage.wrap(continuation)
        if not callable(inner):
            msg = f"stage {name!r} returned {type(inner).__name__} from wrap(), expected a handler"
            raise ConfigurationError(msg)

        async def entry(ctx: RequestContext) -> None:
            ctx.state = TraversalState.IN_STAGE
            ctx.stage_index = index
            try:
                await inner(ctx)
            except ConduitError:
                raise
            except Exception as exc:
                raise StageExecutionError(name, index, str(exc) or type(exc).__name__) from exc

        return entry

    # -- Execution --

    async def handle(self, ctx: RequestContext) -> None:
        """Run *ctx* through the composed handler, building it if needed.

        Every stage error propagates to the caller.  The context's body and
        sink are released on every exit path.
        """
        handler = self._ensure_built()
        if ctx.state is not TraversalState.NOT_STARTED:
            raise ConduitError(f"{ctx!r} has already been through a pipeline")

        token = context_var.set(ctx)
        try:
            await handler(ctx)
            if ctx._violation is not None:
                raise ctx._violation
        except BaseException as exc:
            if isinstance(exc, (StageExecutionError, DoubleInvocationError)):
                index = exc.index
            else:
                index = ctx.stage_index
            logger.debug("%s %s failed in stage #%d: %r", ctx.method, ctx.path, index, exc)
            raise
        else:
            logger.debug(
                "%s %s completed (deepest stage #%d, %d byte(s) written)",
                ctx.method,
                ctx.path,
                ctx.stage_index,
                ctx.response.bytes_written,
            )
        finally:
            ctx.state = TraversalState.COMPLETED
            ctx.close()
            context_var.reset(token)
