"""Integration tests for time-boxed runs through BenchRunner."""

from __future__ import annotations

import signal
import time
from typing import TYPE_CHECKING

import pytest
from servers import BODY_100, every_nth_responds

from webbench.engine.config import BenchConfig
from webbench.engine.supervisor import BenchRunner, StopReason

if TYPE_CHECKING:
    from collections.abc import Callable

    from servers import Handler, ThreadedTcpServer

    from webbench.engine.config import SocketAddress
    from webbench.engine.status import StatusSnapshot

REQUEST = b"GET / HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n"


def _config(address: SocketAddress, clients: int = 2) -> BenchConfig:
    return BenchConfig(addresses=(address,), request=REQUEST, client_count=clients)


@pytest.mark.timeout(30)
class TestBenchRunner:
    def test_completes_after_duration(self, hundred_byte_server: ThreadedTcpServer) -> None:
        polls: list[tuple[StatusSnapshot, float]] = []
        runner = BenchRunner(
            _config(hundred_byte_server.address),
            1.0,
            poll_interval=0.2,
            on_status=lambda snapshot, elapsed: polls.append((snapshot, elapsed)),
            handle_signals=False,
        )

        result = runner.run()

        assert result.stop_reason is StopReason.COMPLETED
        assert result.elapsed_seconds >= 1.0
        assert result.status.successful_requests > 0
        assert result.status.failed_requests == 0
        assert result.requests_per_second == result.status.successful_requests / 1.0
        assert len(polls) >= 5
        assert polls[-1][1] >= 1.0

    def test_aborts_on_too_many_failures(
        self, tcp_server: Callable[[Handler], ThreadedTcpServer]
    ) -> None:
        server = tcp_server(every_nth_responds(4, BODY_100))
        runner = BenchRunner(
            _config(server.address),
            20.0,
            poll_interval=0.1,
            handle_signals=False,
        )

        started = time.monotonic()
        result = runner.run()

        assert result.stop_reason is StopReason.TOO_MANY_FAILURES
        assert time.monotonic() - started < 10.0
        assert result.status.failed_requests > result.status.successful_requests > 0

    def test_failure_abort_can_be_disabled(
        self, tcp_server: Callable[[Handler], ThreadedTcpServer]
    ) -> None:
        server = tcp_server(every_nth_responds(4, BODY_100))
        runner = BenchRunner(
            _config(server.address),
            0.5,
            poll_interval=0.1,
            max_failure_ratio=None,
            handle_signals=False,
        )

        result = runner.run()

        assert result.stop_reason is StopReason.COMPLETED
        assert result.status.failed_requests > 0

    def test_interrupt_signal_stops_the_run(self, hundred_byte_server: ThreadedTcpServer) -> None:
        def _interrupt(_snapshot: StatusSnapshot, elapsed: float) -> None:
            if elapsed > 0.2:
                signal.raise_signal(signal.SIGINT)

        original = signal.getsignal(signal.SIGINT)
        runner = BenchRunner(
            _config(hundred_byte_server.address),
            20.0,
            poll_interval=0.1,
            on_status=_interrupt,
            handle_signals=True,
        )

        result = runner.run()

        assert result.stop_reason is StopReason.INTERRUPTED
        assert result.status.interrupted is True
        assert result.elapsed_seconds < 10.0
        assert signal.getsignal(signal.SIGINT) == original
