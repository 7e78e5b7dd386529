"""Custom exception hierarchy for webbench."""

from __future__ import annotations


class WebbenchError(Exception):
    """Base exception for all webbench errors.

    Every exception raised deliberately by webbench inherits from this
    class, so callers can catch any of them with a single except clause.
    Transient per-request failures (refused connections, broken pipes,
    empty responses) are never raised; they only show up in the counters.
    """


class ConfigError(WebbenchError):
    """Raised when configuration is invalid or missing.

    Examples:
        - The address list or the request buffer is empty.
        - The client count is lower than 1.
        - An environment variable has an invalid value.
    """


class EngineError(WebbenchError):
    """Raised when the benchmark engine cannot run.

    Examples:
        - The event loop thread fails to start.
        - ``start()`` is called twice on the same instance.
    """


class RequestError(WebbenchError):
    """Raised when the raw request cannot be built.

    Examples:
        - The URL has no host or uses a scheme other than ``http``.
        - A custom header is malformed.
    """


class ResolveError(WebbenchError):
    """Raised when no usable socket address can be resolved."""
