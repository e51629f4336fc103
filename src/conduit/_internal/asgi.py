"""ASGI type aliases and small message helpers.

The listener layer is the only part of conduit that speaks raw ASGI.
Everything past ``RequestContext`` works with typed objects.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

# Raw ASGI 3 types
Scope: TypeAlias = MutableMapping[str, Any]
Message: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]


def single_body_receive(body: bytes = b"") -> Receive:
    """Return a receive callable that yields *body* once, then disconnects.

    Used for contexts built outside a real connection (tests, embedding).
    """
    sent = False

    async def receive() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    return receive
