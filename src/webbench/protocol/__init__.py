"""Request construction and address resolution for webbench.

The engine only ever sees the result of this package: an opaque request
buffer and a list of resolved socket addresses.
"""

from __future__ import annotations

from webbench.protocol.request import Method, Version, build_request, parse_header
from webbench.protocol.resolve import resolve_addresses

__all__ = [
    "Method",
    "Version",
    "build_request",
    "parse_header",
    "resolve_addresses",
]
