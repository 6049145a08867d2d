"""Unit tests for PipeConfig."""

from __future__ import annotations

import pytest

from forest_pipe.config import DEFAULT_GRACE_DELAY, DEFAULT_TIMEOUT, PipeConfig


class TestPipeConfig:
    """Tests for defaults and validation."""

    def test_defaults(self) -> None:
        """Defaults are 30 s timeout and 0.5 s grace delay."""
        config = PipeConfig()

        assert config.timeout == DEFAULT_TIMEOUT == 30.0
        assert config.grace_delay == DEFAULT_GRACE_DELAY == 0.5
        assert config.query_base == "pipe://localhost"

    def test_timeout_must_be_positive(self) -> None:
        """A zero timeout is rejected."""
        with pytest.raises(ValueError, match="timeout"):
            PipeConfig(timeout=0)

    def test_grace_delay_may_be_zero(self) -> None:
        """The grace delay can be disabled."""
        assert PipeConfig(grace_delay=0).grace_delay == 0

    def test_negative_grace_delay_rejected(self) -> None:
        """A negative grace delay is rejected."""
        with pytest.raises(ValueError, match="grace_delay"):
            PipeConfig(grace_delay=-1)


class TestPipeConfigFromEnv:
    """Tests for environment overrides."""

    def test_unset_uses_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without variables the defaults apply."""
        monkeypatch.delenv("FOREST_PIPE_TIMEOUT", raising=False)
        monkeypatch.delenv("FOREST_PIPE_GRACE_DELAY", raising=False)

        assert PipeConfig.from_env() == PipeConfig()

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variables override timeout and grace delay."""
        monkeypatch.setenv("FOREST_PIPE_TIMEOUT", "5")
        monkeypatch.setenv("FOREST_PIPE_GRACE_DELAY", "0.1")

        config = PipeConfig.from_env()

        assert config.timeout == 5.0
        assert config.grace_delay == 0.1

    def test_blank_is_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Blank values fall back to the default."""
        monkeypatch.setenv("FOREST_PIPE_TIMEOUT", "  ")

        assert PipeConfig.from_env().timeout == DEFAULT_TIMEOUT

    def test_invalid_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Non-numeric values raise ValueError naming the variable."""
        monkeypatch.setenv("FOREST_PIPE_GRACE_DELAY", "soon")

        with pytest.raises(ValueError, match="FOREST_PIPE_GRACE_DELAY"):
            PipeConfig.from_env()
