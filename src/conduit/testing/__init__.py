"""Test utilities for conduit pipelines and apps.

    from conduit.testing import TestClient, make_context
"""

from conduit.testing.client import TestClient, TestResponse
from conduit.testing.context import make_context

__all__ = ["TestClient", "TestResponse", "make_context"]
