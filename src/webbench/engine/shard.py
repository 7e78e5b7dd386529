"""Engine process entry point: one uvloop event loop running a group of workers."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

from webbench._internal.logging import get_logger, setup_logging
from webbench.engine.worker import ConnectionWorker

if TYPE_CHECKING:
    from collections.abc import Callable
    from multiprocessing.synchronize import Event as MpEvent

    from webbench.engine.config import BenchConfig
    from webbench.engine.status import Status

logger = get_logger("engine.shard")

# How often the event loop looks at the cross-process stop flags
_STOP_POLL_INTERVAL = 0.05


def split_clients(client_count: int, process_count: int) -> list[range]:
    """Divide worker ids into ``process_count`` contiguous groups.

    The first ``client_count % process_count`` groups get one extra worker.

    Args:
        client_count: Total number of connection workers.
        process_count: Number of engine processes.

    Returns:
        One range of worker ids per process, none of them empty.
    """
    base, remainder = divmod(client_count, process_count)
    groups: list[range] = []
    first = 0
    for i in range(process_count):
        size = base + (1 if i < remainder else 0)
        groups.append(range(first, first + size))
        first += size
    return groups


def _loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return the uvloop loop factory if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    return uvloop.new_event_loop


async def _shutdown_workers(
    tasks: list[asyncio.Task[None]],
    grace_period: float,
    force_flag: MpEvent,
) -> None:
    """Wait for workers to exit, cancelling the ones that take too long.

    Workers blocked in a socket call never see the stop event, so after
    ``grace_period`` seconds, or as soon as ``force_flag`` is set, they are
    cancelled, which interrupts the pending call. Returns only when every
    task is done.

    Args:
        tasks: Worker tasks to wind down.
        grace_period: Seconds to wait for a cooperative exit.
        force_flag: Cross-process flag requesting immediate cancellation.
    """
    if not tasks:
        return

    loop = asyncio.get_running_loop()
    deadline = loop.time() + grace_period
    pending: set[asyncio.Task[None]] = set(tasks)

    while pending and not force_flag.is_set():
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        _done, pending = await asyncio.wait(
            pending, timeout=min(remaining, _STOP_POLL_INTERVAL)
        )

    if pending:
        logger.info("Cancelling %d connection workers still busy", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.wait(pending)

    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Worker task %s crashed",
                task.get_name(),
                exc_info=task.exception(),
            )


async def _serve_shard(
    worker_ids: range,
    config: BenchConfig,
    status: Status,
    stop_flag: MpEvent,
    force_flag: MpEvent,
    ready: MpEvent,
    grace_period: float,
) -> None:
    stop_event = asyncio.Event()
    tasks = [
        asyncio.create_task(
            ConnectionWorker(
                worker_id=worker_id,
                config=config,
                status=status,
                stop_event=stop_event,
            ).run(),
            name=f"webbench-client-{worker_id}",
        )
        for worker_id in worker_ids
    ]
    ready.set()

    # The first check runs before any worker gets to execute
    while not stop_flag.is_set():
        await asyncio.sleep(_STOP_POLL_INTERVAL)
    stop_event.set()

    await _shutdown_workers(tasks, grace_period, force_flag)


def run_shard(
    shard_id: int,
    worker_ids: range,
    config: BenchConfig,
    status: Status,
    stop_flag: MpEvent,
    force_flag: MpEvent,
    ready: MpEvent,
    grace_period: float = 5.0,
    log_level: int = 20,
    log_json: bool = False,
) -> None:
    """Entry point for an engine subprocess.

    Runs one connection worker per id in ``worker_ids`` on a fresh event
    loop until ``stop_flag`` is set, then winds them down.

    Args:
        shard_id: Engine process identifier.
        worker_ids: Ids of the connection workers this process owns.
        config: Shared benchmark configuration.
        status: Shared-memory counters.
        stop_flag: Set by the controller to stop cooperatively.
        force_flag: Set by the controller to cancel workers at once.
        ready: Set once every worker task is scheduled.
        grace_period: Cooperative shutdown window in seconds.
        log_level: Logging level.
        log_json: Emit log records as JSON lines.
    """
    setup_logging(level=log_level, json_format=log_json)
    # Ctrl-C reaches the whole process group; the controller decides
    signal.signal(signal.SIGINT, signal.SIG_IGN)

    logger.debug("Engine process %d running workers %s", shard_id, worker_ids)
    with asyncio.Runner(loop_factory=_loop_factory()) as runner:
        runner.run(
            _serve_shard(
                worker_ids,
                config,
                status,
                stop_flag,
                force_flag,
                ready,
                grace_period,
            )
        )
    logger.debug("Engine process %d finished", shard_id)
