"""HTTP primitives carried by ``RequestContext``: headers, body, response sink."""

from conduit.http.body import RequestBody
from conduit.http.headers import Headers
from conduit.http.sink import ResponseSink

__all__ = ["Headers", "RequestBody", "ResponseSink"]
