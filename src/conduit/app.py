"""Conduit application class.

Mutable during setup (stage registration, lifecycle hooks).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from conduit._internal.asgi import Receive, Scope, Send
from conduit._internal.invoke import invoke
from conduit.config import ServerConfig
from conduit.errors import ConfigurationError
from conduit.pipeline.pipeline import Pipeline
from conduit.server.handler import handle_request

S = TypeVar("S")

logger = logging.getLogger("conduit.server")


class App:
    """The conduit application: a pipeline plus the wiring to serve it.

    The entry point builds the app explicitly, registers stages, and runs
    it — there is no startup discovery::

        app = App()
        app.use(StaticResponse("<h1>Hello from My First Middleware</h1>"))
        app.run()

    Thread safety:
        The setup phase is single-threaded.  The freeze transition uses a
        Lock + double-check so exactly one thread builds the pipeline,
        even when several workers call ``__call__()`` on first request.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "pipeline",
    )

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        pipeline: Pipeline | None = None,
    ) -> None:
        self.config: ServerConfig = config or ServerConfig()
        self.pipeline: Pipeline = pipeline if pipeline is not None else Pipeline()
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

    # -- Stages --

    def use(self, stage: S) -> S:
        """Append a stage to the pipeline. Works as a decorator too::

            @app.use
            async def timing(ctx, next):
                ...
        """
        self._check_not_frozen()
        return self.pipeline.register(stage)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Build the pipeline and serve requests with pounce.

        Requires the ``server`` extra (``pip install conduit[server]``).
        """
        self._ensure_frozen()
        from conduit.server.runner import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            workers=self.config.workers,
            log_level=self.config.log_level,
            request_timeout=self.config.request_timeout,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles the lifespan scope directly and delegates HTTP scopes to
        the request handler.  Other scope types (websocket) are ignored.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        await handle_request(
            scope,
            receive,
            send,
            pipeline=self.pipeline,
            config=self.config,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), runs
        the registered hooks, and signals completion back to the server.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    await self.startup()
                except Exception as exc:
                    logger.exception("startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run startup hooks in registration order."""
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self.pipeline.build()
            self._frozen = True
            logger.debug("app frozen with stages %s", self.pipeline.stages)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register stages and hooks before calling app.run()."
            )
            raise ConfigurationError(msg)
