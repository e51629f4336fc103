"""Built-in stages.

StaticResponse -- write a fixed body, then (optionally) delegate
RequestId -- tag each request with an ID in ``ctx.items`` and a header
AccessLog -- log method, path, status, and elapsed time after the chain
RequireHeader -- short-circuit with an error when a header is missing
"""

from conduit.stages.access_log import AccessLog
from conduit.stages.request_id import RequestId
from conduit.stages.require_header import RequireHeader
from conduit.stages.static import StaticResponse

__all__ = ["AccessLog", "RequestId", "RequireHeader", "StaticResponse"]
