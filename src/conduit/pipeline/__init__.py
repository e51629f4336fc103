"""Request-processing pipeline.

Stages are registered in order, folded into one composed handler at
build time, and that handler is invoked once per request::

    from conduit.pipeline import Pipeline

    pipeline = Pipeline()
    pipeline.register(greeting)
    await pipeline.handle(ctx)
"""

from conduit.pipeline.pipeline import Pipeline, noop_terminal
from conduit.pipeline.protocol import Handler, Middleware, Stage, as_stage

__all__ = ["Handler", "Middleware", "Pipeline", "Stage", "as_stage", "noop_terminal"]
