"""Target address resolution."""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING

from webbench._internal.errors import ResolveError
from webbench._internal.logging import get_logger
from webbench.engine.config import SocketAddress
from webbench.protocol.request import parse_url

if TYPE_CHECKING:
    from yarl import URL

logger = get_logger("protocol.resolve")


def resolve_addresses(
    url: str | URL,
    *,
    proxy: SocketAddress | None = None,
) -> tuple[SocketAddress, ...]:
    """Return the candidate addresses a benchmark should connect to.

    A proxy, when given, is the only candidate. Otherwise the URL host is
    resolved for TCP, keeping the resolver's order and dropping duplicates.

    Args:
        url: Absolute ``http`` URL of the target. Port defaults to 80.
        proxy: Optional proxy server address.

    Returns:
        Non-empty tuple of candidate addresses.

    Raises:
        RequestError: If the URL is invalid.
        ResolveError: If the host cannot be resolved.
    """
    if proxy is not None:
        return (proxy,)

    parsed = parse_url(url)
    host = parsed.raw_host or ""
    port = parsed.port or 80

    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        msg = f"Cannot resolve {host}:{port}: {exc}"
        raise ResolveError(msg) from exc

    addresses: list[SocketAddress] = []
    for family, _type, _proto, _canonname, sockaddr in infos:
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        address = SocketAddress(host=str(sockaddr[0]), port=int(sockaddr[1]), family=family)
        if address not in addresses:
            addresses.append(address)

    if not addresses:
        msg = f"No TCP address found for {host}:{port}"
        raise ResolveError(msg)

    logger.debug("Resolved %s:%d to %s", host, port, ", ".join(map(str, addresses)))
    return tuple(addresses)
