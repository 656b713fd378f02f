"""Tests for the error hierarchy and environment configuration."""

import pytest

from strategy_service.config import (
    DEFAULT_HORIZON,
    DEFAULT_STEP_SIZE,
    DEFAULT_TIE_EPSILON,
    EngineConfig,
    load_config,
)
from strategy_service.errors import (
    BackendError,
    ConfigurationError,
    HistoryIndexError,
    MalformedPositionError,
    MoveRejectedError,
    ReplayInconsistencyError,
    RetryableError,
    StrategyError,
    ValidationError,
)


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(MalformedPositionError, ValidationError)
        assert issubclass(HistoryIndexError, ValidationError)
        assert issubclass(BackendError, RetryableError)
        assert issubclass(ReplayInconsistencyError, StrategyError)
        assert not issubclass(MoveRejectedError, RetryableError)

    def test_to_dict(self):
        error = MalformedPositionError("Cell is outside the board", row=3, col=1)
        assert error.to_dict() == {
            "code": "MALFORMED_POSITION",
            "message": "Cell is outside the board",
            "context": {"row": 3, "col": 1},
        }

    def test_str_includes_context(self):
        error = HistoryIndexError("Index is outside the event log", index=7, log_length=3)
        assert str(error) == "[HISTORY_INDEX] Index is outside the event log (index=7, log_length=3)"

    def test_replay_error_keeps_cause(self):
        cause = MoveRejectedError("transition not enabled", move_id="o_play_00")
        error = ReplayInconsistencyError(
            "Backend rejected replayed move", event_index=1, move_id="o_play_00",
            original_error=cause,
        )
        assert error.event_index == 1
        assert error.original_error is cause
        assert error.context["original_error"] == str(cause)


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.horizon == DEFAULT_HORIZON == 2.0
        assert config.step_size == DEFAULT_STEP_SIZE == 0.2
        assert config.tie_epsilon == DEFAULT_TIE_EPSILON == 0.001
        assert config.solver.adaptive is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"horizon": 0.0},
            {"step_size": 0.0},
            {"horizon": 1.0, "step_size": 2.0},
            {"tie_epsilon": -0.1},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            EngineConfig(**kwargs)


class TestLoadConfig:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STRATEGY_ODE_HORIZON", "3.0")
        monkeypatch.setenv("STRATEGY_ODE_STEP", "0.1")
        monkeypatch.setenv("STRATEGY_ODE_ADAPTIVE", "yes")
        monkeypatch.setenv("STRATEGY_TIE_EPSILON", "0.01")
        monkeypatch.setenv("STRATEGY_BACKEND_URL", "http://backend:9000/")
        monkeypatch.setenv("STRATEGY_BACKEND_TIMEOUT_SEC", "4")

        config = load_config()
        assert config.horizon == 3.0
        assert config.step_size == 0.1
        assert config.solver.adaptive is True
        assert config.tie_epsilon == 0.01
        assert config.backend_url == "http://backend:9000"
        assert config.backend_timeout_sec == 4.0

    def test_bad_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("STRATEGY_ODE_HORIZON", "soon")
        monkeypatch.setenv("STRATEGY_ODE_STEP", "-1")
        monkeypatch.setenv("STRATEGY_ODE_ADAPTIVE", "maybe")
        config = load_config()
        assert config.horizon == DEFAULT_HORIZON
        assert config.step_size == DEFAULT_STEP_SIZE
        assert config.solver.adaptive is False
