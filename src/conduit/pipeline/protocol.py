"""Stage protocol and the Handler type alias.

A handler processes one request::

    async def handler(ctx: RequestContext) -> None: ...

A stage turns the rest of the pipeline (its *continuation*) into a new
handler.  Three shapes are accepted, no base class required:

    # Continuation style — a plain function returning a handler
    def greeting(next: Handler) -> Handler:
        async def handler(ctx: RequestContext) -> None:
            ctx.write("<h1>Hello</h1>")
            await next(ctx)
        return handler

    # Middleware style — a coroutine taking (ctx, next)
    async def timing(ctx: RequestContext, next: Handler) -> None:
        start = time.monotonic()
        await next(ctx)
        log(time.monotonic() - start)

    # Interface style — any object with ``wrap(next) -> Handler``
    class Gate:
        def wrap(self, next: Handler) -> Handler: ...

Classes whose ``__call__`` is ``async def __call__(self, ctx, next)`` count
as middleware style, which is how the built-in stages are written.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from conduit.context import RequestContext
from conduit.errors import ConfigurationError

# One request in, nothing out — results live on the context
Handler = Callable[[RequestContext], Awaitable[None]]


@runtime_checkable
class Stage(Protocol):
    """Interface-style stage: wraps the continuation into a new handler."""

    def wrap(self, next: Handler) -> Handler: ...


class Middleware(Protocol):
    """Middleware-style stage: does its work around a call to ``next``."""

    async def __call__(self, ctx: RequestContext, next: Handler) -> None: ...


def stage_name(obj: Any) -> str:
    """Human-readable name for logs and error messages."""
    name = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    if name is None:
        name = type(obj).__qualname__
    return name


def _is_middleware(obj: Any) -> bool:
    if inspect.iscoroutinefunction(obj):
        return True
    call = getattr(obj, "__call__", None)  # noqa: B004 — need the bound method itself
    return not inspect.isfunction(obj) and inspect.iscoroutinefunction(call)


class _ContinuationStage:
    """Adapts a ``(next) -> handler`` function to the Stage interface."""

    __slots__ = ("factory", "name")

    def __init__(self, factory: Callable[[Handler], Handler], name: str) -> None:
        self.factory = factory
        self.name = name

    def wrap(self, next: Handler) -> Handler:
        return self.factory(next)


class _MiddlewareStage:
    """Adapts an ``async (ctx, next)`` callable to the Stage interface."""

    __slots__ = ("middleware", "name")

    def __init__(self, middleware: Middleware, name: str) -> None:
        self.middleware = middleware
        self.name = name

    def wrap(self, next: Handler) -> Handler:
        middleware = self.middleware

        async def handler(ctx: RequestContext) -> None:
            await middleware(ctx, next)

        return handler


class _InterfaceStage:
    """Keeps a user ``wrap()`` object alongside its display name."""

    __slots__ = ("name", "stage")

    def __init__(self, stage: Stage, name: str) -> None:
        self.stage = stage
        self.name = name

    def wrap(self, next: Handler) -> Handler:
        return self.stage.wrap(next)


NamedStage = _ContinuationStage | _MiddlewareStage | _InterfaceStage


def as_stage(obj: Any) -> NamedStage:
    """Normalize any accepted stage shape to one ``wrap()`` interface.

    Raises ``ConfigurationError`` for anything that cannot act as a stage.
    """
    if obj is None:
        raise ConfigurationError("cannot register None as a stage")

    wrap = getattr(obj, "wrap", None)
    if wrap is not None and not isinstance(obj, type):
        if not callable(wrap):
            msg = f"{stage_name(obj)!r} has a 'wrap' attribute that is not callable"
            raise ConfigurationError(msg)
        return _InterfaceStage(obj, stage_name(obj))

    if _is_middleware(obj):
        return _MiddlewareStage(obj, stage_name(obj))

    if callable(obj) and not isinstance(obj, type):
        return _ContinuationStage(obj, stage_name(obj))

    msg = (
        f"{obj!r} is not a stage: expected a (next) -> handler function, "
        "an async (ctx, next) middleware, or an object with wrap(next)"
    )
    raise ConfigurationError(msg)
