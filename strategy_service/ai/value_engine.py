"""Value Engine: position -> per-cell strategic scores.

For every empty cell the engine asks the network builder for "the mover
plays here", integrates that net over the configured horizon and reads the
final WinX / WinO masses. The cell's score is the mover's accumulator minus
the opponent's, so higher is always better for whoever is about to move.

Integrator calls go through a SerialIntegrator and are awaited one cell at a
time. A cell whose integration fails is scored 0 and evaluation carries on;
a partial heatmap is preferred over none.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Dict, Optional, Union

from ..board_rules import BoardRules
from ..config import EngineConfig
from ..metrics import EVALUATION_LATENCY, EVALUATION_REQUESTS, SOLVER_FAILURES
from ..models import Cell, CellScore, Mark, Position, ScoreMap
from ..petri.builder import WIN_PLACES, NetworkBuilder
from ..petri.solver import Integrator, SerialIntegrator, Tsit5Integrator

logger = logging.getLogger(__name__)

__all__ = ["ValueEngine"]


class ValueEngine:
    """Scores every empty cell of a position.

    Only the most recent ScoreMap is kept, and it is reused only when the
    same position is evaluated again.
    """

    def __init__(
        self,
        integrator: Union[Integrator, SerialIntegrator, None] = None,
        builder: Optional[NetworkBuilder] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.builder = builder or NetworkBuilder()
        if isinstance(integrator, SerialIntegrator):
            self._solver = integrator
        else:
            self._solver = SerialIntegrator(integrator or Tsit5Integrator())
        self._last: Optional[ScoreMap] = None

    @property
    def last_score_map(self) -> Optional[ScoreMap]:
        return self._last

    async def evaluate(self, position: Position) -> ScoreMap:
        self._ensure_open()
        BoardRules.validate_position(position)
        key = position.to_key()
        if self._last is not None and self._last.position_key == key:
            EVALUATION_REQUESTS.labels("cached").inc()
            return self._last

        start = time.perf_counter()
        mover = BoardRules.player_to_move(position)
        values: Dict[str, float] = {}
        details: Dict[str, CellScore] = {}

        for cell in position.cells():
            cell_key = cell.to_key()
            if position.mark_at(cell.row, cell.col) != Mark.EMPTY:
                values[cell_key] = 0.0
                continue
            cell_score = await self._score_cell(position, cell, mover)
            values[cell_key] = cell_score.score
            details[cell_key] = cell_score

        score_map = ScoreMap(player=mover, position_key=key, values=values, details=details)
        elapsed = time.perf_counter() - start
        EVALUATION_LATENCY.observe(elapsed)
        EVALUATION_REQUESTS.labels("computed").inc()

        failed = [k for k, d in details.items() if d.failed]
        if failed:
            logger.warning(
                "Evaluation completed with %d failed cell(s)",
                len(failed),
                extra={"position": key, "failed_cells": failed},
            )
        else:
            # Maps with failed cells are not reused, so a retry re-solves them.
            self._last = score_map

        logger.debug(
            "Evaluated %s for %s in %.1fms", key, mover.value, elapsed * 1000.0
        )
        return score_map

    async def evaluate_cell(self, position: Position, cell: Cell) -> CellScore:
        """Score a single hypothetical move for the player to move."""
        self._ensure_open()
        BoardRules.validate_position(position)
        BoardRules.validate_move(position, cell)
        return await self._score_cell(position, cell, BoardRules.player_to_move(position))

    async def _score_cell(self, position: Position, cell: Cell, mover: Mark) -> CellScore:
        net = self.builder.build(position, cell)
        try:
            trajectory = await self._solver.integrate(
                net,
                self.config.horizon,
                self.config.step_size,
                self.config.solver,
            )
        except Exception as e:
            SOLVER_FAILURES.labels("exception").inc()
            logger.warning(
                "Integration failed for cell %s: %s",
                cell.to_key(),
                e,
                extra={"net": net.name},
            )
            return CellScore(failed=True)

        if trajectory is None or len(trajectory) == 0:
            SOLVER_FAILURES.labels("empty").inc()
            logger.warning("Integrator returned no trajectory for cell %s", cell.to_key())
            return CellScore(failed=True)

        final = trajectory.final_state()
        win_x = final.get(WIN_PLACES[Mark.X], 0.0)
        win_o = final.get(WIN_PLACES[Mark.O], 0.0)
        if not (math.isfinite(win_x) and math.isfinite(win_o)):
            SOLVER_FAILURES.labels("non_finite").inc()
            logger.warning("Non-finite win mass for cell %s", cell.to_key())
            return CellScore(failed=True)

        score = win_x - win_o if mover == Mark.X else win_o - win_x
        return CellScore(win_x=win_x, win_o=win_o, score=score)

    @property
    def closed(self) -> bool:
        return self._solver.closed

    def _ensure_open(self) -> None:
        if self._solver.closed:
            raise RuntimeError("ValueEngine is closed")

    def close(self) -> None:
        self._solver.shutdown()
