"""Tests for environment configuration loading."""

from __future__ import annotations

import pytest

from webbench._internal.config import WebbenchConfig, load_config
from webbench._internal.errors import ConfigError

_ENV_VARS = (
    "WEBBENCH_IO_TIMEOUT",
    "WEBBENCH_POLL_INTERVAL",
    "WEBBENCH_MAX_FAILURE_RATIO",
    "WEBBENCH_GRACE_PERIOD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestWebbenchConfig:
    """Tests for the WebbenchConfig dataclass."""

    def test_defaults(self):
        """WebbenchConfig has sensible defaults."""
        config = WebbenchConfig()
        assert config.io_timeout is None
        assert config.poll_interval == 1.0
        assert config.max_failure_ratio == 0.5
        assert config.grace_period == 5.0

    def test_frozen(self):
        """WebbenchConfig is immutable."""
        config = WebbenchConfig()
        with pytest.raises(AttributeError):
            config.poll_interval = 2.0  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        """load_config returns defaults when no env vars are set."""
        assert load_config() == WebbenchConfig()

    def test_io_timeout_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_IO_TIMEOUT is read from the environment."""
        monkeypatch.setenv("WEBBENCH_IO_TIMEOUT", "2.5")
        assert load_config().io_timeout == 2.5

    def test_poll_interval_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_POLL_INTERVAL is read from the environment."""
        monkeypatch.setenv("WEBBENCH_POLL_INTERVAL", "0.25")
        assert load_config().poll_interval == 0.25

    def test_failure_ratio_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_MAX_FAILURE_RATIO is read from the environment."""
        monkeypatch.setenv("WEBBENCH_MAX_FAILURE_RATIO", "0.9")
        assert load_config().max_failure_ratio == 0.9

    @pytest.mark.parametrize("value", ["off", "none", ""])
    def test_failure_ratio_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch, value: str):
        """WEBBENCH_MAX_FAILURE_RATIO=off disables the ratio check."""
        monkeypatch.setenv("WEBBENCH_MAX_FAILURE_RATIO", value)
        assert load_config().max_failure_ratio is None

    def test_grace_period_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_GRACE_PERIOD is read from the environment."""
        monkeypatch.setenv("WEBBENCH_GRACE_PERIOD", "1")
        assert load_config().grace_period == 1.0

    def test_invalid_timeout_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """Non-numeric WEBBENCH_IO_TIMEOUT raises ConfigError."""
        monkeypatch.setenv("WEBBENCH_IO_TIMEOUT", "abc")
        with pytest.raises(ConfigError, match="must be a number"):
            load_config()

    def test_zero_poll_interval_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_POLL_INTERVAL of 0 raises ConfigError."""
        monkeypatch.setenv("WEBBENCH_POLL_INTERVAL", "0")
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_negative_grace_period_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_GRACE_PERIOD of negative value raises ConfigError."""
        monkeypatch.setenv("WEBBENCH_GRACE_PERIOD", "-5.0")
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_zero_failure_ratio_is_allowed(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_MAX_FAILURE_RATIO=0 aborts on the first failure, like the CLI flag."""
        monkeypatch.setenv("WEBBENCH_MAX_FAILURE_RATIO", "0")
        assert load_config().max_failure_ratio == 0.0

    def test_negative_failure_ratio_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """WEBBENCH_MAX_FAILURE_RATIO below zero raises ConfigError."""
        monkeypatch.setenv("WEBBENCH_MAX_FAILURE_RATIO", "-0.1")
        with pytest.raises(ConfigError, match="must be non-negative"):
            load_config()
