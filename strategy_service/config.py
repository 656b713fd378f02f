"""Runtime configuration for the strategy service.

The ODE horizon, step size and tie-break epsilon have no derivation beyond
matching the demo frontend's behaviour, so they are settings rather than
constants:

    STRATEGY_ODE_HORIZON           integration end time (default 2.0)
    STRATEGY_ODE_STEP              initial / fixed step size (default 0.2)
    STRATEGY_ODE_ADAPTIVE          adaptive step control (default off)
    STRATEGY_ODE_ABSTOL            absolute tolerance when adaptive (1e-4)
    STRATEGY_ODE_RELTOL            relative tolerance when adaptive (1e-3)
    STRATEGY_TIE_EPSILON           recommender tie tolerance (0.001)
    STRATEGY_BACKEND_URL           workflow backend base URL
    STRATEGY_BACKEND_TIMEOUT_SEC   per-request backend timeout (10)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 2.0
DEFAULT_STEP_SIZE = 0.2
DEFAULT_ABSTOL = 1e-4
DEFAULT_RELTOL = 1e-3
DEFAULT_TIE_EPSILON = 0.001
DEFAULT_BACKEND_URL = "http://localhost:8080"
DEFAULT_BACKEND_TIMEOUT_SEC = 10.0


def _is_truthy_env(name: str) -> bool | None:
    val = os.environ.get(name, "").strip().lower()
    if not val:
        return None
    if val in {"1", "true", "yes", "on"}:
        return True
    if val in {"0", "false", "no", "off"}:
        return False
    return None


def _parse_positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    return parsed if parsed > 0 else default


@dataclass(frozen=True)
class SolverOptions:
    """Options forwarded to the integrator on every call."""

    adaptive: bool = False
    abstol: float = DEFAULT_ABSTOL
    reltol: float = DEFAULT_RELTOL
    dtmin: float = 1e-6
    dtmax: float = 0.1
    maxiters: int = 100_000


@dataclass(frozen=True)
class EngineConfig:
    """Value-engine and backend settings."""

    horizon: float = DEFAULT_HORIZON
    step_size: float = DEFAULT_STEP_SIZE
    tie_epsilon: float = DEFAULT_TIE_EPSILON
    solver: SolverOptions = field(default_factory=SolverOptions)
    backend_url: str = DEFAULT_BACKEND_URL
    backend_timeout_sec: float = DEFAULT_BACKEND_TIMEOUT_SEC

    def __post_init__(self) -> None:
        if self.horizon <= 0:
            raise ConfigurationError(
                "ODE horizon must be positive",
                context={"horizon": self.horizon},
            )
        if self.step_size <= 0 or self.step_size > self.horizon:
            raise ConfigurationError(
                "ODE step size must be in (0, horizon]",
                context={"step_size": self.step_size, "horizon": self.horizon},
            )
        if self.tie_epsilon < 0:
            raise ConfigurationError(
                "Tie epsilon must not be negative",
                context={"tie_epsilon": self.tie_epsilon},
            )


def load_config() -> EngineConfig:
    """Build an EngineConfig from the environment."""
    adaptive = _is_truthy_env("STRATEGY_ODE_ADAPTIVE")
    solver = SolverOptions(
        adaptive=bool(adaptive),
        abstol=_parse_positive_float("STRATEGY_ODE_ABSTOL", DEFAULT_ABSTOL),
        reltol=_parse_positive_float("STRATEGY_ODE_RELTOL", DEFAULT_RELTOL),
    )
    return EngineConfig(
        horizon=_parse_positive_float("STRATEGY_ODE_HORIZON", DEFAULT_HORIZON),
        step_size=_parse_positive_float("STRATEGY_ODE_STEP", DEFAULT_STEP_SIZE),
        tie_epsilon=_parse_positive_float("STRATEGY_TIE_EPSILON", DEFAULT_TIE_EPSILON),
        solver=solver,
        backend_url=os.getenv("STRATEGY_BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/"),
        backend_timeout_sec=_parse_positive_float(
            "STRATEGY_BACKEND_TIMEOUT_SEC", DEFAULT_BACKEND_TIMEOUT_SEC
        ),
    )
