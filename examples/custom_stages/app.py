"""Custom Stages — the three ways to write a stage, plus the built-ins.

Demonstrates:
- Middleware-style function (timing — appends the elapsed time after the chain)
- Class middleware (rate limiter — 5 req/min per IP, short-circuits with 429)
- Continuation-style function (banner — builds a handler around ``next``)
- Built-in RequestId and AccessLog stages
- threading.Lock for shared state across concurrent requests

Run:
    cd examples/custom_stages && python app.py
"""

import logging
import threading
import time

from conduit import App
from conduit.context import RequestContext
from conduit.pipeline import Handler
from conduit.stages import AccessLog, RequestId, StaticResponse

app = App()


# ---------------------------------------------------------------------------
# Middleware style — timing
# ---------------------------------------------------------------------------


async def timing(ctx: RequestContext, next: Handler) -> None:
    """Append the time spent in the rest of the pipeline to the body."""
    start = time.monotonic()
    await next(ctx)
    elapsed = time.monotonic() - start
    ctx.write(f"\n(served in {elapsed:.3f}s)")


# ---------------------------------------------------------------------------
# Class middleware — rate limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Per-IP rate limiter. Responds 429 without calling later stages."""

    def __init__(self, max_requests: int, window: float) -> None:
        self.max_requests = max_requests
        self.window = window
        self._counts: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    async def __call__(self, ctx: RequestContext, next: Handler) -> None:
        # X-Forwarded-For when behind a proxy; else the peer address
        client_ip = ctx.headers.get("x-forwarded-for") or (
            ctx.client[0] if ctx.client else "unknown"
        )
        client_ip = client_ip.split(",")[0].strip()

        with self._lock:
            now = time.monotonic()
            hits = self._counts.setdefault(client_ip, [])
            hits[:] = [t for t in hits if now - t < self.window]
            limited = len(hits) >= self.max_requests
            if not limited:
                hits.append(now)

        if limited:
            ctx.status = 429
            ctx.response.set_header("Content-Type", "text/plain; charset=utf-8")
            ctx.write("Too Many Requests")
            return
        await next(ctx)


# ---------------------------------------------------------------------------
# Continuation style — banner
# ---------------------------------------------------------------------------


def banner(next: Handler) -> Handler:
    """Prefix every successful response with a banner line."""

    async def handler(ctx: RequestContext) -> None:
        ctx.response.set_header("Content-Type", "text/plain; charset=utf-8")
        ctx.write("== conduit ==\n")
        await next(ctx)

    return handler


# ---------------------------------------------------------------------------
# Pipeline (order: first registered runs first on the way in)
# ---------------------------------------------------------------------------

app.use(AccessLog())
app.use(RequestId())
app.use(timing)
app.use(RateLimiter(max_requests=5, window=60.0))
app.use(banner)
app.use(StaticResponse("OK"))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run()
