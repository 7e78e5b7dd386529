"""Environment-driven defaults for webbench."""

from __future__ import annotations

import os
from dataclasses import dataclass

from webbench._internal.errors import ConfigError


@dataclass(frozen=True)
class WebbenchConfig:
    """Process-wide defaults, overridable from the command line.

    Attributes:
        io_timeout: Per-I/O timeout in seconds for connect, send and
            receive. None disables it and lets a stalled read block a
            worker until it is cancelled.
        poll_interval: Seconds between two status polls of the supervisor.
        max_failure_ratio: Abort once ``failed / successful`` exceeds this
            value. None disables the check.
        grace_period: Seconds ``wait()`` lets workers finish cooperatively
            before cancelling them.
    """

    io_timeout: float | None = None
    poll_interval: float = 1.0
    max_failure_ratio: float | None = 0.5
    grace_period: float = 5.0


def _positive_float(name: str, default: str, *, allow_zero: bool = False) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None

    if value < 0 or (value == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        msg = f"{name} must be {bound}, got: {value}"
        raise ConfigError(msg)
    return value


def _optional_positive_float(
    name: str, default: str, *, allow_zero: bool = False
) -> float | None:
    raw = os.environ.get(name, default)
    if raw.strip().lower() in ("", "none", "off"):
        return None
    return _positive_float(name, raw, allow_zero=allow_zero)


def load_config() -> WebbenchConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        WEBBENCH_IO_TIMEOUT: Per-I/O timeout in seconds (default: unset).
        WEBBENCH_POLL_INTERVAL: Status poll interval (default: 1.0).
        WEBBENCH_MAX_FAILURE_RATIO: Failure ratio threshold, 0 allowed (default: 0.5,
            ``off`` disables it).
        WEBBENCH_GRACE_PERIOD: Cooperative shutdown window (default: 5.0).

    Returns:
        Populated WebbenchConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    return WebbenchConfig(
        io_timeout=_optional_positive_float("WEBBENCH_IO_TIMEOUT", ""),
        poll_interval=_positive_float("WEBBENCH_POLL_INTERVAL", "1.0"),
        max_failure_ratio=_optional_positive_float(
            "WEBBENCH_MAX_FAILURE_RATIO", "0.5", allow_zero=True
        ),
        grace_period=_positive_float("WEBBENCH_GRACE_PERIOD", "5.0"),
    )
