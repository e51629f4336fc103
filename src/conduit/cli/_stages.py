"""``conduit stages`` — print the pipeline in execution order."""

import argparse
import sys

from conduit.cli._resolve import resolve_app


def list_stages(args: argparse.Namespace) -> None:
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    stages = app.pipeline.stages
    if not stages:
        print("(empty pipeline)")
        return
    for index, name in enumerate(stages):
        print(f"{index:>3}  {name}")
