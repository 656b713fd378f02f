"""
Shared pytest fixtures for strategy-service tests.

Provides position factories, an in-memory game backend that enforces the
same turn/occupancy rules as the workflow service, and integrator doubles
for failure and concurrency tests.
"""

from pathlib import Path
import sys
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest


# =============================================================================
# PROMETHEUS REGISTRY FIX
# =============================================================================
# Metrics are registered at import time; if a module is imported under two
# names during collection the default registry would reject the duplicates.


def _patch_prometheus_registry():
    """Make re-registration of identical metrics a no-op instead of an error."""
    try:
        from prometheus_client.registry import CollectorRegistry

        _original_register = CollectorRegistry.register

        def _safe_register(self, collector):
            try:
                return _original_register(self, collector)
            except ValueError as e:
                if "Duplicated timeseries" in str(e):
                    pass
                else:
                    raise

        if not getattr(CollectorRegistry, '_patched_for_tests', False):
            CollectorRegistry.register = _safe_register
            CollectorRegistry._patched_for_tests = True

    except ImportError:
        pass


_patch_prometheus_registry()

# Ensure the repository root is on sys.path so `import strategy_service` works
# without an editable install.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from strategy_service.backend_client import GameBackend, GameSnapshot  # noqa: E402
from strategy_service.board_rules import BoardRules  # noqa: E402
from strategy_service.errors import BackendError, MoveRejectedError, SolverError  # noqa: E402
from strategy_service.models import (  # noqa: E402
    RESET_EVENT_TYPE,
    RESET_MOVE_ID,
    Cell,
    Mark,
    Position,
    move_id_for,
)
from strategy_service.petri.net import PetriNet  # noqa: E402
from strategy_service.petri.solver import Integrator, Trajectory, Tsit5Integrator  # noqa: E402
from strategy_service.replay.session import SessionManager  # noqa: E402


# =============================================================================
# FACTORY FIXTURES
# =============================================================================


@pytest.fixture
def position_factory() -> Callable[..., Position]:
    """Build a Position from row strings, e.g. ("XO.", "...", "..")."""

    def _create(*rows: str) -> Position:
        if not rows:
            return Position.empty()
        return Position.from_rows([["" if ch == "." else ch for ch in row] for row in rows])

    return _create


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================


class InMemoryBackend(GameBackend):
    """Game backend double with the workflow service's enabling rules.

    The mover's play moves are enabled on empty cells until the game ends;
    after that only `reset` is. Moves listed in `reject` are refused even
    when enabled.
    """

    def __init__(self, reject: Optional[Iterable[str]] = None) -> None:
        self.games: Dict[str, Dict[str, Any]] = {}
        self.reject = set(reject or ())
        self.created = 0
        self.applied: List[tuple] = []

    def _enabled(self, game: Dict[str, Any]) -> List[str]:
        position = game["position"]
        if BoardRules.is_terminal(position):
            return [RESET_MOVE_ID]
        mover = BoardRules.player_to_move(position)
        return [move_id_for(mover, c.row, c.col) for c in BoardRules.empty_cells(position)]

    def _snapshot(self, game_id: str) -> GameSnapshot:
        game = self.games[game_id]
        state = {}
        for cell in game["position"].cells():
            mark = game["position"].mark_at(cell.row, cell.col)
            state[f"x{cell.to_key()}"] = 1 if mark == Mark.X else 0
            state[f"o{cell.to_key()}"] = 1 if mark == Mark.O else 0
        return GameSnapshot(game_id=game_id, enabled=self._enabled(game), state=state)

    def _game(self, game_id: str) -> Dict[str, Any]:
        if game_id not in self.games:
            raise BackendError(f"Unknown game {game_id}", status=404)
        return self.games[game_id]

    async def create_game(self) -> GameSnapshot:
        self.created += 1
        game_id = f"game-{self.created}"
        self.games[game_id] = {"position": Position.empty(), "events": []}
        return self._snapshot(game_id)

    async def apply_move(self, game_id: str, move_id: str) -> GameSnapshot:
        game = self._game(game_id)
        if move_id in self.reject or move_id not in self._enabled(game):
            raise MoveRejectedError(
                "transition not enabled", move_id=move_id, instance_id=game_id
            )
        self.applied.append((game_id, move_id))
        if move_id == RESET_MOVE_ID:
            game["position"] = Position.empty()
            game["events"].append({"type": RESET_EVENT_TYPE})
        else:
            player = Mark(move_id[0].upper())
            row, col = int(move_id[-2]), int(move_id[-1])
            game["position"] = game["position"].with_mark(Cell(row=row, col=col), player)
            game["events"].append({"type": f"{player.value}Played{row}{col}"})
        return self._snapshot(game_id)

    async def get_state(self, game_id: str) -> GameSnapshot:
        self._game(game_id)
        return self._snapshot(game_id)

    async def fetch_events(self, game_id: str) -> List[Dict[str, Any]]:
        return list(self._game(game_id)["events"])


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def manager(backend: InMemoryBackend) -> SessionManager:
    return SessionManager(backend)


# =============================================================================
# INTEGRATOR DOUBLES
# =============================================================================


class FailingCellIntegrator(Integrator):
    """Real Tsit5 integration, except nets for the listed move suffixes raise."""

    def __init__(self, failing_suffixes: Iterable[str], error: Optional[Exception] = None) -> None:
        self.failing_suffixes = tuple(failing_suffixes)
        self.error = error
        self.inner = Tsit5Integrator()
        self.seen: List[str] = []

    def integrate(self, net: PetriNet, horizon, step_size, options=None) -> Trajectory:
        self.seen.append(net.name)
        if net.name.endswith(self.failing_suffixes):
            raise self.error or SolverError("forced failure", net_name=net.name)
        return self.inner.integrate(net, horizon, step_size, options)


class NoneIntegrator(Integrator):
    """Returns no trajectory at all."""

    def integrate(self, net, horizon, step_size, options=None):
        return None


@pytest.fixture
def failing_integrator_factory() -> Callable[..., FailingCellIntegrator]:
    def _create(*suffixes: str, error: Optional[Exception] = None) -> FailingCellIntegrator:
        return FailingCellIntegrator(suffixes, error)

    return _create


@pytest.fixture
def none_integrator() -> NoneIntegrator:
    return NoneIntegrator()
