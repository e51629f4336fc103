"""Server configuration.

ServerConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Server configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = ServerConfig(port=8080, request_timeout=5.0)
    """

    # Listener
    host: str = "127.0.0.1"
    port: int = 8000
    workers: int = 1
    debug: bool = False
    log_level: str = "info"

    # Limits
    max_body_size: int | None = 16 * 1024 * 1024  # 16 MB, None disables
    request_timeout: float | None = 30.0  # seconds, None disables

    # Status sent when the pipeline finishes without writing anything
    default_status: int = 404
