"""Header gate — short-circuits requests missing a required header."""

from conduit.context import RequestContext
from conduit.pipeline.protocol import Handler


class RequireHeader:
    """Reject requests without *name* before any later stage runs.

    The rejection is written directly to the response; the continuation
    is never invoked.
    """

    __slots__ = ("detail", "name", "status")

    def __init__(self, name: str, *, status: int = 400, detail: str | None = None) -> None:
        self.name = name
        self.status = status
        self.detail = detail or f"Missing required header: {name}"

    async def __call__(self, ctx: RequestContext, next: Handler) -> None:
        if self.name not in ctx.headers:
            ctx.response.status = self.status
            ctx.response.set_header("Content-Type", "text/plain; charset=utf-8")
            ctx.response.write(self.detail)
            return
        await next(ctx)
