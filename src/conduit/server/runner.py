"""Serving an App with the pounce ASGI server.

Pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``), but
conduit has a live ``App`` object, so ``pounce.Server`` is used directly
with the ASGI callable.
"""

import logging

logger = logging.getLogger("conduit.server")


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    workers: int = 1,
    log_level: str = "info",
    request_timeout: float | None = None,
    app_path: str | None = None,
) -> None:
    """Start a pounce server for *app* and block until it stops.

    Args:
        app: ASGI callable (conduit App instance).
        host: Bind host address.
        port: Bind port number.
        workers: Worker count handed to pounce.
        log_level: Log level name for both conduit and pounce loggers.
        request_timeout: Forwarded to pounce; conduit also enforces its own
            per-request timeout inside the pipeline.
        app_path: Optional ``"module:attribute"`` import string, used by
            pounce when it needs to re-import the app.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    logging.getLogger("conduit").setLevel(log_level.upper())

    kwargs: dict[str, object] = {
        "host": host,
        "port": port,
        "workers": workers,
        "log_level": log_level,
    }
    if request_timeout is not None:
        kwargs["request_timeout"] = request_timeout

    logger.info("serving on http://%s:%d (%d worker(s))", host, port, workers)
    server = Server(ServerConfig(**kwargs), app, app_path=app_path)
    server.run()
