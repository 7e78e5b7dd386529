"""Package version, importable without pulling in the engine."""

__version__ = "0.1.0"
