"""Request ID stage — tags each request for correlation."""

import re
import uuid

from conduit.context import RequestContext
from conduit.pipeline.protocol import Handler

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestId:
    """Reuse the client's request ID or generate one.

    The ID lands in ``ctx.items["request_id"]`` for later stages and in
    the response header of the same name as the incoming one.
    Incoming values that are not plain tokens are replaced.
    """

    __slots__ = ("header", "key")

    def __init__(self, header: str = "X-Request-ID", *, key: str = "request_id") -> None:
        self.header = header
        self.key = key

    async def __call__(self, ctx: RequestContext, next: Handler) -> None:
        incoming = ctx.headers.get(self.header)
        request_id = incoming if incoming and _SAFE_ID.match(incoming) else uuid.uuid4().hex
        ctx.items[self.key] = request_id
        ctx.response.set_header(self.header, request_id)
        await next(ctx)
