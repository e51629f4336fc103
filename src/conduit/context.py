"""Per-request context carried through the pipeline.

Provides:
- ``RequestContext``: method, path, headers, body, response sink, status,
  and the ``items`` extension bag for inter-stage data.
- ``context_var`` / ``current_context()``: the context being processed
  in the current task.

Thread safety:
    A ``RequestContext`` belongs to exactly one pipeline invocation and is
    never shared across concurrent requests, so it needs no locks.
    ``ContextVar`` is task-local under asyncio.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from contextvars import ContextVar
from enum import Enum
from typing import Any, TypeVar

from conduit._internal.asgi import Receive, Scope
from conduit.errors import DoubleInvocationError
from conduit.http.body import RequestBody
from conduit.http.headers import Headers
from conduit.http.sink import ResponseSink

T = TypeVar("T")


class TraversalState(Enum):
    """Where a request is in its trip through the pipeline."""

    NOT_STARTED = "not_started"
    IN_STAGE = "in_stage"
    COMPLETED = "completed"


class Extensions(MutableMapping[str, Any]):
    """String-keyed bag for data one stage leaves for another.

    Usage::

        ctx.items["user"] = user            # in an auth stage
        user = ctx.items.require("user", User)  # downstream
    """

    __slots__ = ("_data",)

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            msg = f"extension keys must be str, got {type(key).__name__}"
            raise TypeError(msg)
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Extensions({self._data!r})"

    def require(self, key: str, kind: type[T]) -> T:
        """Return ``self[key]``, checking it is an instance of *kind*.

        Raises ``KeyError`` if missing and ``TypeError`` on a type mismatch.
        """
        value = self._data[key]
        if not isinstance(value, kind):
            msg = f"extension {key!r} is {type(value).__name__}, expected {kind.__name__}"
            raise TypeError(msg)
        return value


class RequestContext:
    """One in-flight HTTP exchange.

    Request fields are read-only; the response sink is write-only and
    ``items`` is free for stages to share data within this request.
    """

    __slots__ = (
        "_advanced",
        "_violation",
        "body",
        "cancelled",
        "client",
        "headers",
        "http_version",
        "items",
        "method",
        "path",
        "query_string",
        "response",
        "stage_index",
        "state",
    )

    def __init__(
        self,
        method: str,
        path: str,
        headers: Headers,
        body: RequestBody,
        *,
        response: ResponseSink | None = None,
        query_string: bytes = b"",
        http_version: str = "1.1",
        client: tuple[str, int] | None = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.headers = headers
        self.body = body
        if body.on_disconnect is None:
            body.on_disconnect = self.cancel
        self.response = response if response is not None else ResponseSink()
        self.query_string = query_string
        self.http_version = http_version
        self.client = client
        self.items = Extensions()
        self.cancelled = False
        # Traversal bookkeeping, owned by the pipeline.
        self.state = TraversalState.NOT_STARTED
        self.stage_index = -1
        self._advanced: set[int] = set()
        self._violation: DoubleInvocationError | None = None

    # -- Factories --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive,
        *,
        max_body_size: int | None = None,
    ) -> RequestContext:
        """Create a context from an ASGI HTTP scope and receive callable."""
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(scope.get("headers", ())),
            body=RequestBody(receive, max_size=max_body_size),
            query_string=scope.get("query_string", b""),
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
        )

    @classmethod
    def detached(
        cls,
        method: str = "GET",
        path: str = "/",
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
    ) -> RequestContext:
        """A context not tied to any connection (tests, embedding)."""
        return cls(
            method=method,
            path=path,
            headers=Headers.from_mapping(headers),
            body=RequestBody.from_bytes(body),
        )

    # -- Response shortcuts --

    @property
    def status(self) -> int | None:
        """The response status (``None`` until a stage sets it)."""
        return self.response.status

    @status.setter
    def status(self, value: int) -> None:
        self.response.status = value

    def write(self, data: str | bytes) -> None:
        """Append to the response body."""
        self.response.write(data)

    # -- Lifecycle --

    def cancel(self) -> None:
        """Flag the request as abandoned (client gone or timed out)."""
        self.cancelled = True

    def close(self) -> None:
        """Release the body stream and refuse further response writes."""
        self.body.close()
        self.response.close()

    def __repr__(self) -> str:
        return f"<RequestContext {self.method} {self.path} state={self.state.value}>"


# -- Current context --

context_var: ContextVar[RequestContext] = ContextVar("conduit_context")
"""The context being processed. Set by ``Pipeline.handle`` for its duration."""


def current_context() -> RequestContext:
    """Return the context for the request being handled in this task.

    Raises ``LookupError`` outside a pipeline invocation.
    """
    return context_var.get()
