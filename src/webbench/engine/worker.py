"""Connection worker: the connect, send, receive, record loop."""

from __future__ import annotations

import asyncio
import contextlib
import socket
from enum import Enum, auto
from typing import TYPE_CHECKING

from webbench._internal.logging import get_logger

if TYPE_CHECKING:
    from webbench.engine.config import BenchConfig
    from webbench.engine.status import Status

logger = get_logger("engine.worker")

# Fixed receive buffer. A read shorter than this ends the response.
RECV_BUFFER_SIZE = 1024


class WorkerState(Enum):
    """State machine for a connection worker."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    SENDING = auto()
    RECEIVING = auto()
    SUCCESS = auto()
    FAILURE = auto()


class ConnectionWorker:
    """Issues the configured request over and over until told to stop.

    Each cycle is connect (or reuse) -> send -> receive -> record. A cycle
    that fails to connect, fails to send, or receives zero bytes counts as
    a failure; anything else adds its byte count to the status and counts
    as a success.

    With ``reuse_connection`` (keep-alive) a successful cycle goes straight
    back to sending on the same socket. Every failure, and every cycle in
    one-shot mode, closes the socket and reconnects.

    Connect failures are retried immediately unless ``connect_backoff`` is
    set, so an unreachable target keeps the worker spinning. Without an
    ``io_timeout`` a peer that never answers blocks the worker in its read
    until the task is cancelled.

    Attributes:
        worker_id: Identifier used for the task name.
        reuse_connection: True in keep-alive mode.
        connections_opened: Number of successful connects so far.
    """

    def __init__(
        self,
        worker_id: int,
        config: BenchConfig,
        status: Status,
        stop_event: asyncio.Event,
    ) -> None:
        self.worker_id = worker_id
        self.reuse_connection = config.keep_alive
        self.connections_opened = 0
        self._config = config
        self._status = status
        self._stop_event = stop_event
        self._state = WorkerState.DISCONNECTED
        self._sock: socket.socket | None = None
        self._buffer = bytearray(RECV_BUFFER_SIZE)

    @property
    def state(self) -> WorkerState:
        """Return the current state."""
        return self._state

    async def run(self) -> None:
        """Loop over request cycles until the stop event is set.

        Cancelling the task interrupts the pending socket call; the socket
        is closed on the way out.
        """
        loop = asyncio.get_running_loop()
        try:
            while not self._stop_event.is_set():
                if self._sock is None:
                    self._state = WorkerState.CONNECTING
                    self._sock = await self._connect(loop)
                    if self._sock is None:
                        self._state = WorkerState.FAILURE
                        self._status.record_failure()
                        # Always suspends, even with a zero backoff
                        await asyncio.sleep(self._config.connect_backoff)
                        continue
                    self.connections_opened += 1

                received = 0
                self._state = WorkerState.SENDING
                if await self._send(loop, self._sock):
                    self._state = WorkerState.RECEIVING
                    received = await self._receive(loop, self._sock)

                if received > 0:
                    self._state = WorkerState.SUCCESS
                    self._status.record_success(received)
                    if self.reuse_connection:
                        continue
                else:
                    self._state = WorkerState.FAILURE
                    self._status.record_failure()

                self._close()
                # Connects and sends to loopback can complete without ever
                # suspending; yield so stop requests get processed.
                await asyncio.sleep(0)
        finally:
            self._close()
            self._state = WorkerState.DISCONNECTED
            logger.debug(
                "Connection worker %d exiting after %d connections",
                self.worker_id,
                self.connections_opened,
            )

    async def _connect(self, loop: asyncio.AbstractEventLoop) -> socket.socket | None:
        """Open a connection to the first reachable address, in list order."""
        for address in self._config.addresses:
            try:
                sock = socket.socket(address.family, socket.SOCK_STREAM)
            except OSError:
                continue

            try:
                sock.setblocking(False)
                async with asyncio.timeout(self._config.io_timeout):
                    await loop.sock_connect(sock, address.sockaddr)
            except OSError:
                sock.close()
                continue
            except asyncio.CancelledError:
                sock.close()
                raise

            # Best effort: a failure here does not fail the cycle
            with contextlib.suppress(OSError):
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            return sock

        return None

    async def _send(self, loop: asyncio.AbstractEventLoop, sock: socket.socket) -> bool:
        """Write the whole request, resuming after short writes."""
        try:
            async with asyncio.timeout(self._config.io_timeout):
                await loop.sock_sendall(sock, self._config.request)
        except OSError:
            return False
        return True

    async def _receive(self, loop: asyncio.AbstractEventLoop, sock: socket.socket) -> int:
        """Read until a short read, EOF or error; return the bytes read."""
        total = 0
        while True:
            try:
                async with asyncio.timeout(self._config.io_timeout):
                    nbytes = await loop.sock_recv_into(sock, self._buffer)
            except OSError:
                break

            total += nbytes
            if nbytes < RECV_BUFFER_SIZE:
                break
        return total

    def _close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
