"""Raw HTTP request construction."""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING

from multidict import CIMultiDict
from yarl import URL

from webbench._internal.errors import RequestError
from webbench._internal.version import __version__

if TYPE_CHECKING:
    from collections.abc import Iterable

    from webbench._internal.types import Header

USER_AGENT = f"webbench/{__version__}"

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class Method(str, Enum):
    """Request methods that carry no body."""

    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"


class Version(str, Enum):
    """HTTP versions that can be written as plain text."""

    HTTP_09 = "0.9"
    HTTP_10 = "1.0"
    HTTP_11 = "1.1"

    @property
    def wire_name(self) -> str:
        """Version token for the request line, e.g. ``HTTP/1.1``."""
        return f"HTTP/{self.value}"


def is_keep_alive(keep: bool, version: Version) -> bool:
    """Keep-alive is only requested over HTTP/1.1."""
    return keep and version is Version.HTTP_11


def parse_header(header: str) -> Header:
    """Split ``"Name: value"`` into a validated pair.

    Raises:
        RequestError: If the colon is missing, the name is not a valid
            token, or the value contains a line break.
    """
    name, sep, value = header.partition(":")
    if not sep:
        msg = f"Invalid HTTP header: {header!r}"
        raise RequestError(msg)

    name = name.strip()
    value = value.strip()
    if not _TOKEN_RE.match(name):
        msg = f"Invalid header name: {name!r}"
        raise RequestError(msg)
    if "\r" in value or "\n" in value:
        msg = f"Invalid header value for {name}: {value!r}"
        raise RequestError(msg)
    return name, value


def parse_url(url: str | URL) -> URL:
    """Parse and check a target URL.

    Raises:
        RequestError: If the URL is not an absolute ``http`` URL with a host.
    """
    try:
        parsed = url if isinstance(url, URL) else URL(url)
    except ValueError as exc:
        msg = f"Invalid URL: {url!s}"
        raise RequestError(msg) from exc

    if parsed.scheme != "http":
        msg = f"Only http:// URLs are supported, got: {url!s}"
        raise RequestError(msg)
    if not parsed.raw_host:
        msg = f"Invalid host in URL: {url!s}"
        raise RequestError(msg)
    return parsed


def _host_header(url: URL) -> str:
    host = url.raw_host or ""
    if ":" in host:
        host = f"[{host}]"
    if url.is_default_port():
        return host
    return f"{host}:{url.port}"


def build_request(
    url: str | URL,
    *,
    method: Method = Method.GET,
    version: Version = Version.HTTP_11,
    keep_alive: bool = False,
    headers: Iterable[Header] = (),
    absolute_form: bool = False,
) -> bytes:
    """Build the raw bytes of a bodiless HTTP request.

    The default headers are ``User-Agent``, ``Host`` and ``Connection``;
    a custom header with the same name replaces the default one.

    Args:
        url: Absolute ``http`` URL of the target.
        method: Request method.
        version: HTTP version written on the request line.
        keep_alive: Ask for a persistent connection. Ignored unless the
            version is 1.1.
        headers: Extra ``(name, value)`` pairs, in order.
        absolute_form: Put the full URL on the request line, as proxies
            expect, instead of the path and query.

    Returns:
        The request line, headers and the terminating blank line.

    Raises:
        RequestError: If the URL or a header is invalid.
    """
    parsed = parse_url(url)
    target = str(parsed.with_fragment(None)) if absolute_form else parsed.raw_path_qs

    fields: CIMultiDict[str] = CIMultiDict()
    fields["User-Agent"] = USER_AGENT
    fields["Host"] = _host_header(parsed)
    fields["Connection"] = "keep-alive" if is_keep_alive(keep_alive, version) else "close"

    custom: CIMultiDict[str] = CIMultiDict()
    for raw_name, raw_value in headers:
        custom.add(*parse_header(f"{raw_name}:{raw_value}"))
    for name in custom:
        fields.popall(name, None)
    fields.extend(custom)

    lines = [f"{method.value} {target} {version.wire_name}"]
    lines.extend(f"{name}: {value}" for name, value in fields.items())
    text = "\r\n".join(lines) + "\r\n\r\n"

    try:
        return text.encode("latin-1")
    except UnicodeEncodeError as exc:
        msg = "Request contains characters that cannot be sent as latin-1"
        raise RequestError(msg) from exc
