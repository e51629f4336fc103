"""Access log stage.

Runs its logging *after* the continuation returns, so when registered
first it sees the final status of every request.
"""

import logging
import time

from conduit.context import RequestContext
from conduit.errors import HTTPError
from conduit.pipeline.protocol import Handler


class AccessLog:
    """Log one line per request: method, path, status, bytes, elapsed.

    A downstream error logs the status the listener will send for it
    (500, or the ``HTTPError`` status); a cancelled request logs ``-``.
    """

    __slots__ = ("logger",)

    def __init__(self, logger_name: str = "conduit.access") -> None:
        self.logger = logging.getLogger(logger_name)

    async def __call__(self, ctx: RequestContext, next: Handler) -> None:
        start = time.perf_counter()
        failed_status: int | None = None
        try:
            await next(ctx)
        except HTTPError as exc:
            failed_status = exc.status
            raise
        except Exception:
            failed_status = 500
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            # The listener discards the buffer on failure; log what it sends
            status: int | str | None = failed_status or ctx.response.status
            if status is None:
                status = 200 if ctx.response.started else "-"
            self.logger.info(
                '"%s %s" %s %d %.1fms',
                ctx.method,
                ctx.path,
                status,
                ctx.response.bytes_written,
                elapsed_ms,
                extra={"request_id": ctx.items.get("request_id")},
            )
