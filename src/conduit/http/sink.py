"""Write-only response sink.

Stages append body bytes in order; the listener flushes the buffer to the
transport once the pipeline returns.  Status and headers are fixed the
moment the first body byte is written.
"""

from conduit.errors import ConduitError, ResponseStartedError


class ResponseSink:
    """Append-only response buffer for one request.

    Usage::

        ctx.response.status = 201
        ctx.response.set_header("Content-Type", "text/plain")
        ctx.response.write("created")
    """

    __slots__ = ("_bytes_written", "_chunks", "_closed", "_headers", "_started", "_status")

    def __init__(self) -> None:
        self._status: int | None = None
        self._headers: list[tuple[str, str]] = []
        self._chunks: list[bytes] = []
        self._bytes_written = 0
        self._started = False
        self._closed = False

    # -- Status and headers --

    @property
    def status(self) -> int | None:
        """The response status, or ``None`` while unset."""
        return self._status

    @status.setter
    def status(self, value: int) -> None:
        if self._started:
            msg = f"cannot set status {value} after the response body has started"
            raise ResponseStartedError(msg)
        self._status = value

    @property
    def headers(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._headers)

    def set_header(self, name: str, value: str) -> None:
        """Set *name*, replacing any earlier value (case-insensitive)."""
        self._check_headers_open(name)
        _check_header(name, value)
        folded = name.lower()
        self._headers = [(n, v) for n, v in self._headers if n.lower() != folded]
        self._headers.append((name, value))

    def add_header(self, name: str, value: str) -> None:
        """Append a header without replacing existing values."""
        self._check_headers_open(name)
        _check_header(name, value)
        self._headers.append((name, value))

    def get_header(self, name: str) -> str | None:
        folded = name.lower()
        for n, v in self._headers:
            if n.lower() == folded:
                return v
        return None

    # -- Body --

    def write(self, data: str | bytes) -> None:
        """Append *data* to the body. ``str`` is encoded as UTF-8."""
        if self._closed:
            raise ConduitError("response sink is closed")
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if not chunk:
            return
        self._started = True
        self._chunks.append(chunk)
        self._bytes_written += len(chunk)

    @property
    def started(self) -> bool:
        """True once any body bytes have been written."""
        return self._started

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def body(self) -> bytes:
        """Everything written so far, in write order."""
        return b"".join(self._chunks)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse further writes. The buffer stays readable for the listener."""
        self._closed = True

    def _check_headers_open(self, name: str) -> None:
        if self._started:
            msg = f"cannot set header {name!r} after the response body has started"
            raise ResponseStartedError(msg)


def _check_header(name: str, value: str) -> None:
    """Reject headers the listener could not put on the wire.

    Raises ``ValueError`` inside the calling stage, so the failure
    surfaces as a ``StageExecutionError`` and a 500.
    """
    try:
        name.encode("latin-1")
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        msg = f"header {name!r} is not latin-1 encodable"
        raise ValueError(msg) from exc
    if any(c in name or c in value for c in "\r\n"):
        msg = f"header {name!r} contains a line break"
        raise ValueError(msg)
