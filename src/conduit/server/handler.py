"""ASGI handler — the listener boundary.

The only component that touches raw ASGI for HTTP scopes.  Builds a
RequestContext from the scope, runs it through the pipeline under a
timeout while watching for client disconnects, then flushes the response
sink (or an error response) back through ASGI ``send()``.
"""

import logging
import traceback

import anyio

from conduit._internal.asgi import Receive, Scope, Send
from conduit.config import ServerConfig
from conduit.context import RequestContext
from conduit.errors import HTTPError
from conduit.pipeline.pipeline import Pipeline
from conduit.server.sender import send_error, send_sink

logger = logging.getLogger("conduit.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Pipeline,
    config: ServerConfig,
) -> None:
    """Process a single HTTP request through the pipeline."""
    if scope["type"] != "http":
        return

    ctx = RequestContext.from_asgi(scope, receive, max_body_size=config.max_body_size)
    error: Exception | None = None

    with anyio.move_on_after(config.request_timeout) as deadline:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_disconnect, ctx, tg.cancel_scope)
            try:
                await pipeline.handle(ctx)
            except Exception as exc:
                error = exc
            finally:
                tg.cancel_scope.cancel()

    if ctx.cancelled:
        logger.info("%s %s — client disconnected", ctx.method, ctx.path)
        return

    if deadline.cancelled_caught:
        logger.warning(
            "504 %s %s — no response after %ss", ctx.method, ctx.path, config.request_timeout
        )
        await send_error(send, 504, "Gateway Timeout")
        return

    if error is None:
        status = await send_sink(ctx.response, send, default_status=config.default_status)
        logger.debug("%d %s %s", status, ctx.method, ctx.path)
    elif isinstance(error, HTTPError):
        logger.debug("%d %s %s — %s", error.status, ctx.method, ctx.path, error.detail)
        await send_error(send, error.status, error.detail)
    else:
        logger.error("500 %s %s", ctx.method, ctx.path, exc_info=error)
        if config.debug:
            detail = "".join(traceback.format_exception(error))
        else:
            detail = "Internal Server Error"
        await send_error(send, 500, detail)


async def _watch_disconnect(ctx: RequestContext, scope: anyio.CancelScope) -> None:
    """Cancel the request as soon as the client goes away.

    Only listens once the body has been fully received; until then the
    body stream itself reports disconnects to whichever stage is reading.
    """
    message = await ctx.body.receive_after_body()
    if message["type"] == "http.disconnect":
        ctx.cancel()
        scope.cancel()
