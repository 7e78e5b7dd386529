"""Shared test fixtures for the webbench test suite."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web
from servers import BODY_100, ThreadedTcpServer, get_free_port, respond_with

from webbench.engine.config import SocketAddress

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from servers import Handler


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Raw TCP servers
# =============================================================================


@pytest.fixture
def tcp_server() -> Iterator[Callable[[Handler], ThreadedTcpServer]]:
    """Factory fixture starting ThreadedTcpServer instances, stopped on teardown."""
    servers: list[ThreadedTcpServer] = []

    def _start(handler: Handler) -> ThreadedTcpServer:
        server = ThreadedTcpServer(handler).start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.stop()


@pytest.fixture
def hundred_byte_server(tcp_server: Callable[[Handler], ThreadedTcpServer]) -> ThreadedTcpServer:
    """Answers each request with exactly 100 bytes, then closes."""
    return tcp_server(respond_with(BODY_100))


@pytest.fixture
def unreachable_address() -> SocketAddress:
    """A loopback address nobody listens on."""
    return SocketAddress("127.0.0.1", get_free_port())


# =============================================================================
# Real HTTP/1.1 server (aiohttp) on a background thread
# =============================================================================


async def _hello_handler(request: web.Request) -> web.Response:
    return web.Response(text="hello")


def _create_http_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/", _hello_handler)
    return app


@pytest.fixture
def sync_http_server() -> Iterator[SocketAddress]:
    """aiohttp server running in a background thread.

    Useful for engine tests where the benchmark owns its own event loop
    and the test thread blocks.
    """
    port = get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_http_app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield SocketAddress("127.0.0.1", port)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
