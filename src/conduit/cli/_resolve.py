"""App import resolution — turns ``"module:attribute"`` into an App to serve."""

import importlib

from conduit.app import App
from conduit.pipeline.pipeline import Pipeline


def resolve_app(import_string: str) -> App:
    """Resolve an import string to a conduit App instance.

    Accepts ``"module:attribute"``; the attribute defaults to ``"app"``.
    The target may be an ``App``, a bare ``Pipeline`` (wrapped in an App
    with the default ServerConfig), or a zero-argument factory returning
    either.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the import string is malformed or the target is not
            an App or Pipeline.
    """
    module_path, _, attr_name = import_string.partition(":")
    if not module_path:
        msg = f"{import_string!r} has no module path, expected 'module:attribute'"
        raise TypeError(msg)
    attr_name = attr_name or "app"

    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name)

    if callable(obj) and not isinstance(obj, (App, Pipeline)):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc
        if not isinstance(obj, (App, Pipeline)):
            msg = (
                f"Factory function {import_string!r} returned {type(obj).__name__}, "
                "expected a conduit.App or conduit.Pipeline"
            )
            raise TypeError(msg)

    if isinstance(obj, Pipeline):
        return App(pipeline=obj)

    if not isinstance(obj, App):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not a conduit.App instance"
        raise TypeError(msg)

    return obj
