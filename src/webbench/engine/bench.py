"""Benchmark orchestrator: owns the engine processes and their workers."""

from __future__ import annotations

import multiprocessing
import multiprocessing.process
import os
import signal
import threading
import time
from typing import TYPE_CHECKING, Any

from webbench._internal.errors import EngineError
from webbench._internal.logging import get_logger
from webbench.engine.shard import run_shard, split_clients
from webbench.engine.status import Status

if TYPE_CHECKING:
    from types import TracebackType

    from webbench.engine.config import BenchConfig
    from webbench.engine.status import StatusSnapshot

logger = get_logger("engine.bench")

_HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# How often start() checks that a booting engine process is still alive
_READY_POLL_INTERVAL = 0.05


def default_process_count(client_count: int) -> int:
    """Return ``min(client_count, cpu_count)``, at least 1."""
    cpu_count = os.cpu_count() or 1
    return max(min(client_count, cpu_count), 1)


class Webbench:
    """Runs ``client_count`` connection workers against one target.

    The workers are spread over engine processes, one per available CPU
    by default, each running its group as asyncio tasks on its own event
    loop (uvloop where available). Every worker shares the same immutable
    config and adds into the same shared-memory ``Status``. ``start``,
    ``stop``, ``wait`` and ``status`` are plain calls usable from any
    synchronous controller.

    Lifecycle: ``start()`` -> (poll ``status()``) -> ``stop()`` -> ``wait()``.

    Attributes:
        grace_period: Seconds ``wait()`` lets workers exit on their own
            before cancelling them.
    """

    def __init__(
        self,
        config: BenchConfig,
        *,
        handle_signals: bool = True,
        grace_period: float = 5.0,
        processes: int | None = None,
        log_level: int = 20,
        log_json: bool = False,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Validated benchmark configuration.
            handle_signals: Install SIGINT/SIGTERM handlers on ``start()``
                that raise the ``interrupted`` flag. Only possible from the
                main thread.
            grace_period: Cooperative shutdown window in seconds.
            processes: Number of engine processes. Defaults to
                ``min(client_count, cpu_count)``; capped at ``client_count``.
            log_level: Logging level inside the engine processes.
            log_json: Emit JSON log lines from the engine processes.

        Raises:
            EngineError: If ``processes`` is less than 1.
        """
        if processes is not None and processes < 1:
            msg = f"processes must be >= 1, got: {processes}"
            raise EngineError(msg)

        self._config = config
        self._handle_signals = handle_signals
        self.grace_period = grace_period
        self._log_level = log_level
        self._log_json = log_json
        self._process_count = (
            min(processes, config.client_count)
            if processes is not None
            else default_process_count(config.client_count)
        )

        self._ctx = multiprocessing.get_context("spawn")
        self._status = Status(self._ctx)
        self._stop_flag = self._ctx.Event()
        self._force_flag = self._ctx.Event()
        self._processes: list[multiprocessing.process.BaseProcess] = []
        self._started = False
        self._stop_requested = False
        self._saved_handlers: dict[int, Any] = {}

    @property
    def config(self) -> BenchConfig:
        """Return the benchmark configuration."""
        return self._config

    @property
    def process_count(self) -> int:
        """Return the number of engine processes the workers are spread over."""
        return self._process_count

    @property
    def running(self) -> bool:
        """Return True while any engine process is alive."""
        return any(p.is_alive() for p in self._processes)

    def status(self) -> StatusSnapshot:
        """Return a snapshot of the shared counters. Never blocks."""
        return self._status.snapshot()

    def start(self) -> None:
        """Spawn the engine processes and return once every worker is scheduled.

        Raises:
            EngineError: If already started or if an engine process cannot
                be started or dies while setting up its event loop.
        """
        if self._started:
            msg = "benchmark already started"
            raise EngineError(msg)
        self._started = True

        if self._handle_signals:
            self._install_signal_handlers()

        ready_flags = []
        for shard_id, worker_ids in enumerate(
            split_clients(self._config.client_count, self._process_count)
        ):
            ready = self._ctx.Event()
            ready_flags.append(ready)
            self._processes.append(
                self._ctx.Process(
                    target=run_shard,
                    args=(
                        shard_id,
                        worker_ids,
                        self._config,
                        self._status,
                        self._stop_flag,
                        self._force_flag,
                        ready,
                        self.grace_period,
                        self._log_level,
                        self._log_json,
                    ),
                    name=f"webbench-engine-{shard_id}",
                    daemon=True,
                )
            )

        try:
            for p in self._processes:
                p.start()
                logger.debug("Started engine process: pid=%d, name=%s", p.pid or 0, p.name)
            for p, ready in zip(self._processes, ready_flags, strict=True):
                self._wait_ready(p, ready)
        except (OSError, EngineError) as exc:
            self._abort_start()
            if isinstance(exc, EngineError):
                raise
            msg = "cannot start the engine processes"
            raise EngineError(msg) from exc

        logger.info(
            "Started %d connection workers (%s) in %d processes against %s",
            self._config.client_count,
            "keep-alive" if self._config.keep_alive else "close",
            self._process_count,
            ", ".join(str(a) for a in self._config.addresses),
        )

    def stop(self, *, force: bool = False) -> None:
        """Ask every worker to terminate. Safe to call any number of times.

        Args:
            force: Also cancel the worker tasks right away, interrupting
                any pending socket call, instead of letting the current
                cycle finish.
        """
        if not self._stop_requested:
            logger.info("Stop requested")
        self._stop_requested = True

        if force:
            self._force_flag.set()
        self._stop_flag.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every worker has unwound.

        Must be preceded by ``stop()``, otherwise it blocks until the
        timeout expires.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if all workers have finished, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for p in self._processes:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            p.join(remaining)
            if p.is_alive():
                return False

        self._restore_signal_handlers()
        if self._processes:
            for p in self._processes:
                if p.exitcode != 0:
                    logger.error("Engine process %s exited with code %s", p.name, p.exitcode)
            logger.info("All %d connection workers stopped", self._config.client_count)
        return True

    def __enter__(self) -> Webbench:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
        self.wait()

    # ------------------------------------------------------------------
    # Engine processes
    # ------------------------------------------------------------------

    @staticmethod
    def _wait_ready(process: multiprocessing.process.BaseProcess, ready: Any) -> None:
        while not ready.wait(_READY_POLL_INTERVAL):
            if not process.is_alive():
                msg = (
                    f"engine process {process.name} exited with code "
                    f"{process.exitcode} while setting up its event loop"
                )
                raise EngineError(msg)

    def _abort_start(self) -> None:
        self._force_flag.set()
        self._stop_flag.set()
        for p in self._processes:
            if p.is_alive():
                p.join(timeout=self.grace_period)
            if p.is_alive():
                logger.warning("Engine process %s did not exit in time, terminating", p.name)
                p.terminate()
                p.join(timeout=2.0)
        self._restore_signal_handlers()

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def _on_signal(self, signum: int, _frame: object) -> None:
        logger.info("Signal %d received, marking the run as interrupted", signum)
        self._status.mark_interrupted()

    def _install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to the interrupted flag.

        Stopping is left to whoever polls ``status()``.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in the main thread, signal handlers not installed")
            return

        for sig in _HANDLED_SIGNALS:
            self._saved_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        if not self._saved_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            return

        for sig, handler in self._saved_handlers.items():
            # getsignal() returns None for handlers not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._saved_handlers.clear()
