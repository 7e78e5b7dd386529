"""Logging setup for webbench: human-readable or JSON lines on stderr."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Engine processes tag their records with the process name, so the
    ``process`` key tells the shards apart.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "process": record.processName,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class _WebbenchHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """The stderr handler owned by ``setup_logging``.

    Having its own type lets ``setup_logging`` find it among handlers that
    other code (test harnesses, embedding applications) attached to the
    same logger. Like ``logging.lastResort`` it writes to whatever
    ``sys.stderr`` is at emit time.
    """

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, _value: object) -> None:
        pass


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root webbench logger.

    Installs one stderr handler on the ``webbench`` logger namespace.
    Calling it again reconfigures that handler in place, so the level and
    format always reflect the latest call. Handlers added by anyone else
    are left alone.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit one JSON object per line instead of
            human-readable text.

    Returns:
        The configured ``webbench`` root logger.
    """
    logger = logging.getLogger("webbench")
    logger.setLevel(level)

    handler = next((h for h in logger.handlers if isinstance(h, _WebbenchHandler)), None)
    if handler is None:
        handler = _WebbenchHandler()
        logger.addHandler(handler)

    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_format))

    # Records stop here; the root logger would print them a second time
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``webbench`` namespace.

    Args:
        name: Logger name, appended to the ``webbench.`` prefix.
            Example: ``get_logger("engine.bench")`` returns
            ``logging.getLogger("webbench.engine.bench")``.
    """
    return logging.getLogger(f"webbench.{name}")
