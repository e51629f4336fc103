"""``conduit run`` — resolve an app and serve it."""

import argparse
import sys

from conduit.cli._resolve import resolve_app


def run_app(args: argparse.Namespace) -> None:
    """Serve ``args.app``; CLI flags override the app's ServerConfig."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    app._ensure_frozen()

    from conduit.server.runner import run_server

    run_server(
        app,
        args.host or app.config.host,
        args.port or app.config.port,
        workers=args.workers if args.workers is not None else app.config.workers,
        log_level=app.config.log_level,
        request_timeout=app.config.request_timeout,
        app_path=args.app,
    )
