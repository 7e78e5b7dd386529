"""Immutable benchmark configuration handed to the engine."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING

from webbench._internal.errors import ConfigError

if TYPE_CHECKING:
    from webbench._internal.types import SockAddr


@dataclass(frozen=True)
class SocketAddress:
    """A resolved TCP endpoint.

    Attributes:
        host: Literal IPv4 or IPv6 address (no hostnames).
        port: TCP port, 1-65535.
        family: Address family of ``host``. Inferred when omitted; an
            explicit family that does not match ``host`` is rejected.
    """

    host: str
    port: int
    family: socket.AddressFamily | None = None

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            msg = f"port must be in 1..65535, got: {self.port}"
            raise ConfigError(msg)

        try:
            ip = ipaddress.ip_address(self.host)
        except ValueError:
            msg = f"not an IP address: {self.host!r}"
            raise ConfigError(msg) from None

        family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET
        if self.family is None:
            object.__setattr__(self, "family", family)
        elif self.family != family:
            msg = f"{self.host} is an {family.name} address, got family {self.family.name}"
            raise ConfigError(msg)

    @classmethod
    def from_ip(cls, host: str, port: int) -> SocketAddress:
        """Build an address from a literal IP in normalised form."""
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            msg = f"not an IP address: {host!r}"
            raise ConfigError(msg) from None
        return cls(host=str(ip), port=port)

    @classmethod
    def parse(cls, text: str) -> SocketAddress:
        """Parse ``"1.2.3.4:80"`` or ``"[::1]:80"``.

        Raises:
            ConfigError: If the text is not a literal address with a port.
        """
        host, sep, port_str = text.strip().rpartition(":")
        if not sep or not host:
            msg = f"expected HOST:PORT, got: {text!r}"
            raise ConfigError(msg)
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        try:
            port = int(port_str)
        except ValueError:
            msg = f"invalid port in {text!r}"
            raise ConfigError(msg) from None
        return cls.from_ip(host, port)

    @property
    def sockaddr(self) -> SockAddr:
        """Address tuple for ``socket.connect``."""
        if self.family == socket.AF_INET6:
            return (self.host, self.port, 0, 0)
        return (self.host, self.port)

    def __str__(self) -> str:
        if self.family == socket.AF_INET6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class BenchConfig:
    """Everything a benchmark run needs, validated once at construction.

    Shared read-only by every connection worker. Nothing in the engine
    mutates it after construction.

    Attributes:
        addresses: Candidate endpoints, tried in order on every connect.
        request: The raw request, written verbatim on every cycle.
        keep_alive: Reuse one connection across request cycles.
        client_count: Number of concurrent connection workers.
        io_timeout: Optional per-I/O timeout in seconds. None means a
            stalled peer blocks the worker until it is cancelled.
        connect_backoff: Seconds to sleep after a failed connect. The
            default of 0 retries immediately.
    """

    addresses: tuple[SocketAddress, ...]
    request: bytes
    keep_alive: bool = False
    client_count: int = 1
    io_timeout: float | None = None
    connect_backoff: float = 0.0

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple
        object.__setattr__(self, "addresses", tuple(self.addresses))
        object.__setattr__(self, "request", bytes(self.request))

        if not self.addresses:
            msg = "at least one address is required"
            raise ConfigError(msg)
        if not self.request:
            msg = "request buffer must not be empty"
            raise ConfigError(msg)
        if self.client_count < 1:
            msg = f"client_count must be >= 1, got: {self.client_count}"
            raise ConfigError(msg)
        if self.io_timeout is not None and self.io_timeout <= 0:
            msg = f"io_timeout must be positive, got: {self.io_timeout}"
            raise ConfigError(msg)
        if self.connect_backoff < 0:
            msg = f"connect_backoff must be >= 0, got: {self.connect_backoff}"
            raise ConfigError(msg)
