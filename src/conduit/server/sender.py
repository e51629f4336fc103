"""ASGI response sending — translates a finished ResponseSink to ASGI messages."""

from conduit._internal.asgi import Send
from conduit.http.sink import ResponseSink

DEFAULT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(
    send: Send,
    status: int,
    body: bytes = b"",
    headers: tuple[tuple[str, str], ...] = (),
) -> None:
    """Send one complete response: ``http.response.start`` plus a single body."""
    raw_headers: list[tuple[bytes, bytes]] = []
    has_content_type = False
    for name, value in headers:
        lowered = name.lower()
        if lowered == "content-length":
            continue
        if lowered == "content-type":
            has_content_type = True
        raw_headers.append((lowered.encode("latin-1"), value.encode("latin-1")))

    if not _body_allowed(status):
        body = b""
    elif body and not has_content_type:
        raw_headers.append((b"content-type", DEFAULT_CONTENT_TYPE.encode("latin-1")))

    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )


async def send_sink(sink: ResponseSink, send: Send, *, default_status: int) -> int:
    """Flush what the pipeline wrote. Returns the status actually sent.

    A sink with no status and no body gets *default_status*; a sink with a
    body but no explicit status is a 200.
    """
    status = sink.status
    if status is None:
        status = 200 if sink.started else default_status
    await send_response(send, status, sink.body, sink.headers)
    return status


async def send_error(send: Send, status: int, detail: str = "") -> None:
    """Send a plain-text error response."""
    await send_response(send, status, detail.encode("utf-8"))
