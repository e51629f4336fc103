"""Conduit — a composable request pipeline for ASGI servers.

Independently written stages are chained in registration order; each
one can act before and after the rest of the pipeline, or stop the
chain early.

Basic usage::

    from conduit import App
    from conduit.stages import StaticResponse

    app = App()
    app.use(StaticResponse("<h1>Hello from My First Middleware</h1>"))
    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "ClientDisconnected",
    "ConduitError",
    "ConfigurationError",
    "DoubleInvocationError",
    "HTTPError",
    "Handler",
    "Middleware",
    "PayloadTooLarge",
    "Pipeline",
    "RequestContext",
    "ResponseStartedError",
    "ServerConfig",
    "Stage",
    "StageExecutionError",
    "current_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import conduit`` fast while providing a clean top-level API.
    """
    if name == "App":
        from conduit.app import App

        return App

    if name == "ServerConfig":
        from conduit.config import ServerConfig

        return ServerConfig

    if name in ("RequestContext", "current_context"):
        from conduit import context as _ctx

        return getattr(_ctx, name)

    if name in ("Pipeline", "Handler", "Middleware", "Stage"):
        from conduit import pipeline as _pipeline

        return getattr(_pipeline, name)

    if name in (
        "ClientDisconnected",
        "ConduitError",
        "ConfigurationError",
        "DoubleInvocationError",
        "HTTPError",
        "PayloadTooLarge",
        "ResponseStartedError",
        "StageExecutionError",
    ):
        from conduit import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
