"""webbench: a raw-socket HTTP load generator."""

from __future__ import annotations

from webbench._internal.version import __version__
from webbench.engine.bench import Webbench
from webbench.engine.config import BenchConfig, SocketAddress
from webbench.engine.status import Status, StatusSnapshot
from webbench.engine.supervisor import BenchResult, BenchRunner, StopReason
from webbench.protocol.request import Method, Version, build_request
from webbench.protocol.resolve import resolve_addresses

__all__ = [
    "BenchConfig",
    "BenchResult",
    "BenchRunner",
    "Method",
    "SocketAddress",
    "Status",
    "StatusSnapshot",
    "StopReason",
    "Version",
    "Webbench",
    "build_request",
    "resolve_addresses",
]
