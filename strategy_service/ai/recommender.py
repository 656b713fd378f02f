"""Recommender: pick the best empty cell from a ScoreMap."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..board_rules import BoardRules
from ..config import DEFAULT_TIE_EPSILON
from ..models import Cell, Position, ScoreMap

logger = logging.getLogger(__name__)

__all__ = ["recommend", "tie_set"]


def tie_set(
    score_map: ScoreMap,
    position: Position,
    epsilon: float = DEFAULT_TIE_EPSILON,
) -> List[Cell]:
    """Empty cells scoring within `epsilon` of the running maximum.

    Cells are scanned row-major. A strictly greater score starts a new set,
    so the first member is always the first cell that reached the maximum.
    """
    if score_map.position_key != position.to_key():
        logger.warning(
            "Score map was computed for %s, not %s",
            score_map.position_key,
            position.to_key(),
        )

    best = float("-inf")
    tied: List[Cell] = []
    for cell in BoardRules.empty_cells(position):
        value = score_map.value(cell)
        if value > best:
            best = value
            tied = [cell]
        elif abs(value - best) < epsilon:
            tied.append(cell)
    return tied


def recommend(
    score_map: ScoreMap,
    position: Position,
    preferred_cell: Optional[Cell] = None,
    epsilon: float = DEFAULT_TIE_EPSILON,
) -> Optional[Cell]:
    """Best empty cell, or None once the game is over (won, drawn or full).

    On a tie, `preferred_cell` wins if it is one of the tied cells; otherwise
    the first tied cell in row-major order does.
    """
    if BoardRules.is_terminal(position):
        return None
    tied = tie_set(score_map, position, epsilon)
    if not tied:
        return None
    if preferred_cell is not None and len(tied) > 1 and preferred_cell in tied:
        return preferred_cell
    return tied[0]
