"""Shared type aliases for webbench."""

from __future__ import annotations

# A single ``(name, value)`` HTTP header pair.
Header = tuple[str, str]

# Address tuple accepted by ``socket.connect`` (IPv4 pair or IPv6 quadruple).
SockAddr = tuple[str, int] | tuple[str, int, int, int]
