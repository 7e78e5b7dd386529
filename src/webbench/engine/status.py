"""Shared status counters written by connection workers."""

from __future__ import annotations

import ctypes
import multiprocessing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from multiprocessing.context import BaseContext

# Slots in the shared counter array
_BYTES = 0
_SUCCESS = 1
_FAILED = 2


@dataclass(frozen=True)
class StatusSnapshot:
    """Read-only copy of the counters at one instant.

    Counters are copied one at a time, so two counters may come from
    slightly different instants.

    Attributes:
        bytes_received: Response bytes counted by successful cycles.
        successful_requests: Cycles that received at least one byte.
        failed_requests: Cycles that failed to connect, send or receive.
        interrupted: True once an interrupt signal has been received.
    """

    bytes_received: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    interrupted: bool = False

    @property
    def completed_requests(self) -> int:
        """Return the number of classified request cycles."""
        return self.successful_requests + self.failed_requests


class Status:
    """Monotonic counters shared by every worker process and the controller.

    The counters live in shared memory so that connection workers in
    several engine processes add into the same totals. Each mutator is a
    fetch-and-add under the array's lock, so concurrent updates are never
    lost and a cancelled worker never leaves a half-applied change behind.
    Readers copy the values without taking the lock. Nothing is ever
    decremented or reset.

    A ``Status`` is handed to engine processes as a ``Process`` argument;
    it cannot be pickled at any other time.
    """

    __slots__ = ("_counters", "_interrupted")

    def __init__(self, ctx: BaseContext | None = None) -> None:
        """Allocate the shared counters.

        Args:
            ctx: Multiprocessing context the engine processes will be
                started from. Defaults to the ``spawn`` context.
        """
        ctx = ctx or multiprocessing.get_context("spawn")
        self._counters: Any = ctx.Array(ctypes.c_uint64, 3)
        # Only the controller's signal handler writes the flag
        self._interrupted: Any = ctx.RawValue(ctypes.c_bool, False)

    def __getstate__(self) -> tuple[Any, Any]:
        return self._counters, self._interrupted

    def __setstate__(self, state: tuple[Any, Any]) -> None:
        self._counters, self._interrupted = state

    @property
    def bytes_received(self) -> int:
        return int(self._counters.get_obj()[_BYTES])

    @property
    def successful_requests(self) -> int:
        return int(self._counters.get_obj()[_SUCCESS])

    @property
    def failed_requests(self) -> int:
        return int(self._counters.get_obj()[_FAILED])

    @property
    def interrupted(self) -> bool:
        return bool(self._interrupted.value)

    def record_success(self, nbytes: int) -> None:
        """Count one successful cycle that received ``nbytes`` bytes.

        Raises:
            ValueError: If ``nbytes`` is not positive. An empty response
                is a failure and must go through ``record_failure``.
        """
        if nbytes <= 0:
            msg = f"a successful cycle needs at least one byte, got {nbytes}"
            raise ValueError(msg)
        with self._counters.get_lock():
            counters = self._counters.get_obj()
            counters[_BYTES] += nbytes
            counters[_SUCCESS] += 1

    def record_failure(self) -> None:
        """Count one failed cycle."""
        with self._counters.get_lock():
            self._counters.get_obj()[_FAILED] += 1

    def mark_interrupted(self) -> None:
        """Raise the interrupted flag. It is never cleared."""
        self._interrupted.value = True

    def snapshot(self) -> StatusSnapshot:
        """Copy the current counters without blocking."""
        bytes_received, success, failed = self._counters.get_obj()[:]
        return StatusSnapshot(
            bytes_received=int(bytes_received),
            successful_requests=int(success),
            failed_requests=int(failed),
            interrupted=bool(self._interrupted.value),
        )
