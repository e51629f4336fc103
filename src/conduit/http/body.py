"""Readable request-body stream.

Pulls ``http.request`` messages from the ASGI receive callable on demand.
The stream can be consumed once; ``read()`` caches the full body so later
stages see the same bytes.
"""

import json as json_module
from collections.abc import AsyncIterator, Callable
from typing import Any

import anyio

from conduit._internal.asgi import Message, Receive, single_body_receive
from conduit.errors import ClientDisconnected, ConduitError, PayloadTooLarge


class RequestBody:
    """The request body of one in-flight exchange.

    Usage::

        async for chunk in ctx.body.stream():
            ...

        data = await ctx.body.read()
    """

    __slots__ = (
        "_cached",
        "_closed",
        "_drained",
        "_drained_event",
        "_max_size",
        "_receive",
        "_received",
        "_started",
        "on_disconnect",
    )

    def __init__(
        self,
        receive: Receive,
        *,
        max_size: int | None = None,
        on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        self._receive = receive
        self._max_size = max_size
        self.on_disconnect = on_disconnect
        self._received = 0
        self._cached: bytes | None = None
        self._started = False
        self._drained = False
        self._drained_event: anyio.Event | None = None
        self._closed = False

    @classmethod
    def from_bytes(cls, data: bytes = b"", **kwargs: Any) -> "RequestBody":
        """A body backed by an in-memory payload."""
        return cls(single_body_receive(data), **kwargs)

    @property
    def drained(self) -> bool:
        """True once the final ``http.request`` message has been received."""
        return self._drained

    @property
    def closed(self) -> bool:
        return self._closed

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive.

        Raises ``ClientDisconnected`` if the peer goes away mid-body and
        ``PayloadTooLarge`` once the configured limit is exceeded.
        """
        if self._closed:
            raise ConduitError("request body is closed")
        if self._cached is not None:
            if self._cached:
                yield self._cached
            return
        if self._started:
            raise ConduitError("request body stream already consumed")
        self._started = True

        while not self._drained:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                if self.on_disconnect is not None:
                    self.on_disconnect()
                raise ClientDisconnected("client disconnected while sending the body")
            chunk = message.get("body", b"")
            if not message.get("more_body", False):
                self._mark_drained()
            if chunk:
                self._received += len(chunk)
                if self._max_size is not None and self._received > self._max_size:
                    raise PayloadTooLarge(
                        f"request body exceeds {self._max_size} bytes"
                    )
                yield chunk

    async def read(self) -> bytes:
        """Read the full body. Cached after the first call."""
        if self._cached is None:
            chunks = [chunk async for chunk in self.stream()]
            self._cached = b"".join(chunks)
        return self._cached

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.read()).decode(encoding)

    async def json(self) -> Any:
        return json_module.loads(await self.read())

    async def wait_drained(self) -> None:
        """Block until the body has been fully received."""
        if self._drained:
            return
        if self._drained_event is None:
            self._drained_event = anyio.Event()
        await self._drained_event.wait()

    async def receive_after_body(self) -> Message:
        """Receive the next transport message once the body is drained.

        After the body, the only message ASGI servers deliver is
        ``http.disconnect``; the listener uses this to watch the peer.
        """
        await self.wait_drained()
        return await self._receive()

    def close(self) -> None:
        """Release the stream. Idempotent."""
        self._closed = True
        self._cached = None

    def _mark_drained(self) -> None:
        self._drained = True
        if self._drained_event is not None:
            self._drained_event.set()
