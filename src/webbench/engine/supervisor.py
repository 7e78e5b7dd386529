"""Time-boxed benchmark run: polls the counters and decides when to stop."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from webbench._internal.errors import EngineError, WebbenchError
from webbench._internal.logging import get_logger, setup_logging
from webbench.engine.bench import Webbench

if TYPE_CHECKING:
    from collections.abc import Callable

    from webbench.engine.config import BenchConfig
    from webbench.engine.status import StatusSnapshot

logger = get_logger("engine.supervisor")


class StopReason(Enum):
    """Why a benchmark run ended."""

    COMPLETED = auto()
    TOO_MANY_FAILURES = auto()
    INTERRUPTED = auto()


@dataclass(frozen=True)
class BenchResult:
    """Outcome of a benchmark run.

    Rates are computed over the configured duration, not the measured one,
    so an early stop does not inflate them.

    Attributes:
        status: Counters after every worker has stopped.
        duration_seconds: Configured run duration.
        elapsed_seconds: Measured time from start to the stop decision.
        stop_reason: Why the run ended.
    """

    status: StatusSnapshot
    duration_seconds: float
    elapsed_seconds: float
    stop_reason: StopReason

    def _per_second(self, value: float) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return value / self.duration_seconds

    @property
    def bytes_per_second(self) -> float:
        return self._per_second(self.status.bytes_received)

    @property
    def requests_per_second(self) -> float:
        return self._per_second(self.status.successful_requests)

    @property
    def requests_per_minute(self) -> float:
        return self.requests_per_second * 60.0


def failure_ratio_exceeded(snapshot: StatusSnapshot, max_ratio: float | None) -> bool:
    """Return True if ``failed / successful`` is above ``max_ratio``.

    The ratio is undefined while nothing has succeeded yet; that case never
    triggers an abort.

    Args:
        snapshot: Counters to check.
        max_ratio: Threshold, or None to disable the check.
    """
    if max_ratio is None or snapshot.successful_requests == 0:
        return False
    return snapshot.failed_requests / snapshot.successful_requests > max_ratio


def check_stop(snapshot: StatusSnapshot, max_ratio: float | None) -> StopReason | None:
    """Return the reason to stop early, or None to keep running."""
    if failure_ratio_exceeded(snapshot, max_ratio):
        return StopReason.TOO_MANY_FAILURES
    if snapshot.interrupted:
        return StopReason.INTERRUPTED
    return None


class BenchRunner:
    """Runs a benchmark for a fixed duration.

    Starts a ``Webbench``, polls its status every ``poll_interval`` seconds
    and stops it when the duration expires, when the failure ratio is
    exceeded, or when an interrupt signal has been received.
    """

    def __init__(
        self,
        config: BenchConfig,
        duration_seconds: float,
        *,
        poll_interval: float = 1.0,
        max_failure_ratio: float | None = 0.5,
        on_status: Callable[[StatusSnapshot, float], None] | None = None,
        handle_signals: bool = True,
        grace_period: float = 5.0,
        processes: int | None = None,
        log_level: int = 20,
        log_json: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Validated benchmark configuration.
            duration_seconds: Run duration in seconds.
            poll_interval: Seconds between two status polls.
            max_failure_ratio: Abort threshold for ``failed / successful``.
                None disables it.
            on_status: Optional callback invoked with each polled snapshot
                and the elapsed seconds.
            handle_signals: Install SIGINT/SIGTERM handlers during the run.
            grace_period: Cooperative shutdown window in seconds.
            processes: Number of engine processes. Defaults to one per CPU,
                capped at the client count.
            log_level: Logging level.
            log_json: Emit log records as JSON lines.

        Raises:
            EngineError: If the duration or poll interval is not positive.
        """
        if duration_seconds <= 0:
            msg = f"duration must be positive, got: {duration_seconds}"
            raise EngineError(msg)
        if poll_interval <= 0:
            msg = f"poll interval must be positive, got: {poll_interval}"
            raise EngineError(msg)

        self.config = config
        self.duration_seconds = duration_seconds
        self._poll_interval = poll_interval
        self._max_failure_ratio = max_failure_ratio
        self._on_status = on_status
        self._handle_signals = handle_signals
        self._grace_period = grace_period
        self._processes = processes
        self._log_level = log_level
        self._log_json = log_json

    def run(self) -> BenchResult:
        """Execute the benchmark and return its result.

        Blocks until the run ends and every worker has stopped.

        Raises:
            EngineError: If the engine cannot start or the polling loop fails.
        """
        setup_logging(level=self._log_level, json_format=self._log_json)

        bench = Webbench(
            self.config,
            handle_signals=self._handle_signals,
            grace_period=self._grace_period,
            processes=self._processes,
            log_level=self._log_level,
            log_json=self._log_json,
        )

        logger.info(
            "Starting benchmark: clients=%d, duration=%.1fs, keep_alive=%s",
            self.config.client_count,
            self.duration_seconds,
            self.config.keep_alive,
        )

        bench.start()
        # The clock starts once every worker is scheduled
        start_time = time.monotonic()
        deadline = start_time + self.duration_seconds

        try:
            reason = self._poll(bench, start_time, deadline)
        except WebbenchError:
            raise
        except Exception as exc:
            logger.exception("Benchmark failed")
            raise EngineError("Benchmark failed") from exc
        finally:
            elapsed = time.monotonic() - start_time
            bench.stop()
            bench.wait()

        result = BenchResult(
            status=bench.status(),
            duration_seconds=self.duration_seconds,
            elapsed_seconds=elapsed,
            stop_reason=reason,
        )

        logger.info(
            "Benchmark finished (%s): elapsed=%.1fs, success=%d, failed=%d, received=%d bytes",
            reason.name.lower(),
            elapsed,
            result.status.successful_requests,
            result.status.failed_requests,
            result.status.bytes_received,
        )
        return result

    def _poll(self, bench: Webbench, start_time: float, deadline: float) -> StopReason:
        while True:
            snapshot = bench.status()
            now = time.monotonic()
            if self._on_status is not None:
                self._on_status(snapshot, now - start_time)

            reason = check_stop(snapshot, self._max_failure_ratio)
            if reason is not None:
                logger.warning("Stopping early: %s", reason.name.lower())
                return reason

            if now >= deadline:
                return StopReason.COMPLETED

            time.sleep(min(self._poll_interval, deadline - now))
