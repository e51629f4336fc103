"""Static response stage.

Writes a fixed body before handing the request to the rest of the
pipeline.  The smallest useful stage: it shows the "before" half of
a stage and the call to the continuation.
"""

from conduit.context import RequestContext
from conduit.pipeline.protocol import Handler


class StaticResponse:
    """Write *body* to every response.

    Usage::

        app.use(StaticResponse("<h1>Hello from My First Middleware</h1>"))

    With ``then_continue=False`` the stage short-circuits and later stages
    never run.
    """

    __slots__ = ("body", "content_type", "status", "then_continue")

    def __init__(
        self,
        body: str | bytes,
        *,
        content_type: str | None = "text/html; charset=utf-8",
        status: int | None = None,
        then_continue: bool = True,
    ) -> None:
        self.body = body
        self.content_type = content_type
        self.status = status
        self.then_continue = then_continue

    async def __call__(self, ctx: RequestContext, next: Handler) -> None:
        response = ctx.response
        if not response.started:
            if self.status is not None:
                response.status = self.status
            if self.content_type and response.get_header("content-type") is None:
                response.set_header("Content-Type", self.content_type)
        response.write(self.body)
        if self.then_continue:
            await next(ctx)
