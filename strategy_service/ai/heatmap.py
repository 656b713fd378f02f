"""Heatmap state with protection against stale evaluations.

Evaluations are awaited, so the position can change while one is in
flight. Each refresh is tagged with a generation number; a result whose
generation is no longer the latest is dropped instead of overwriting the
map for the newer position.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..metrics import STALE_EVALUATIONS
from ..models import Cell, Position, ScoreMap
from .recommender import recommend, tie_set
from .value_engine import ValueEngine

logger = logging.getLogger(__name__)

__all__ = ["HeatmapController"]


class HeatmapController:
    def __init__(self, engine: ValueEngine, epsilon: Optional[float] = None) -> None:
        self._engine = engine
        self._generation = 0
        self._epsilon = epsilon if epsilon is not None else engine.config.tie_epsilon
        self.current: Optional[ScoreMap] = None

    @property
    def generation(self) -> int:
        return self._generation

    async def refresh(self, position: Position) -> Optional[ScoreMap]:
        """Evaluate `position`; returns None if a newer refresh superseded it."""
        self._generation += 1
        generation = self._generation
        score_map = await self._engine.evaluate(position)
        if generation != self._generation:
            STALE_EVALUATIONS.inc()
            logger.debug(
                "Dropping stale evaluation for %s (generation %d < %d)",
                score_map.position_key,
                generation,
                self._generation,
            )
            return None
        self.current = score_map
        return score_map

    def invalidate(self) -> None:
        """Forget the current map and any in-flight result."""
        self._generation += 1
        self.current = None

    def values_for(self, position: Position) -> Optional[ScoreMap]:
        if self.current is None or self.current.position_key != position.to_key():
            return None
        return self.current

    def recommended(
        self, position: Position, preferred_cell: Optional[Cell] = None
    ) -> Optional[Cell]:
        score_map = self.values_for(position)
        if score_map is None:
            return None
        return recommend(score_map, position, preferred_cell, self._epsilon)

    def tied(self, position: Position) -> List[Cell]:
        score_map = self.values_for(position)
        if score_map is None:
            return []
        return tie_set(score_map, position, self._epsilon)
