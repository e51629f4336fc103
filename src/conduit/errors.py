"""Conduit exception hierarchy.

Shared across the pipeline, the request context, and the listener so every
module raises and catches the same types.
"""


class ConduitError(Exception):
    """Base for all conduit-specific errors."""


class ConfigurationError(ConduitError):
    """Raised when the pipeline or app is configured incorrectly.

    Surfaces at setup time: registering after build, or registering
    something that cannot act as a stage.
    """


class StageExecutionError(ConduitError):
    """A stage's own logic failed while processing a request.

    The original exception is chained as ``__cause__``.  The listener
    decides what the client sees (usually a 500).
    """

    def __init__(self, stage: str, index: int, detail: str = "") -> None:
        self.stage = stage
        self.index = index
        self.detail = detail
        message = f"stage {stage!r} (#{index}) failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DoubleInvocationError(ConduitError):
    """A stage called its continuation more than once for one request.

    This is a programming defect in the stage, not a runtime condition.
    """

    def __init__(self, stage: str, index: int) -> None:
        self.stage = stage
        self.index = index
        super().__init__(
            f"stage {stage!r} (#{index}) invoked its continuation more than once"
        )


class ResponseStartedError(ConduitError):
    """Status or headers were changed after the response body began."""


class ClientDisconnected(ConduitError):  # noqa: N818 — mirrors the ASGI event name
    """The peer went away while the request was being processed."""


class HTTPError(ConduitError):
    """An error that maps directly to an HTTP status code.

    Raised by stages (or the request body) before any response bytes are
    written.  The listener turns it into a plain-text response.
    """

    def __init__(self, status: int, detail: str = "") -> None:
        self.status = status
        self.detail = detail
        super().__init__(status, detail)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class PayloadTooLarge(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """413 — the request body exceeded ``ServerConfig.max_body_size``."""

    def __init__(self, detail: str = "Payload Too Large") -> None:
        super().__init__(status=413, detail=detail)
