"""Conduit CLI — serve an app from an import string.

Entry point registered as ``conduit`` in ``pyproject.toml``::

    [project.scripts]
    conduit = "conduit.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``conduit`` command."""
    parser = argparse.ArgumentParser(
        prog="conduit",
        description="Conduit — a composable request pipeline for ASGI.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- conduit run ------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Serve an app")
    run_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    run_parser.add_argument("--workers", type=int, default=None, help="Worker count")

    # -- conduit stages ---------------------------------------------------
    stages_parser = subparsers.add_parser("stages", help="List an app's pipeline stages")
    stages_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from conduit.cli._run import run_app

        run_app(args)
    elif args.command == "stages":
        from conduit.cli._stages import list_stages

        list_stages(args)
