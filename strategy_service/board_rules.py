"""Board-level rules for the strategy service.

Mover, winner and move legality are derived from the grid alone: X moves
first, so the mover is X when both marks have been placed equally often and
O otherwise. Nothing here talks to the backend; the backend stays the
authority for live games and these helpers only mirror its rules for
display, validation and hypothetical positions.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from .errors import MalformedPositionError
from .models import DRAW, Cell, Mark, Position

__all__ = ["BoardRules", "WinPattern"]

WinPattern = Tuple[str, Tuple[Cell, ...]]


@lru_cache(maxsize=8)
def _win_patterns(size: int) -> Tuple[WinPattern, ...]:
    patterns: List[WinPattern] = []
    for r in range(size):
        patterns.append((f"Row{r}", tuple(Cell(row=r, col=c) for c in range(size))))
    for c in range(size):
        patterns.append((f"Col{c}", tuple(Cell(row=r, col=c) for r in range(size))))
    patterns.append(("Dg0", tuple(Cell(row=i, col=i) for i in range(size))))
    patterns.append(("Dg1", tuple(Cell(row=i, col=size - 1 - i) for i in range(size))))
    return tuple(patterns)


class BoardRules:
    """Static helpers over Position."""

    @staticmethod
    def win_patterns(size: int) -> Tuple[WinPattern, ...]:
        """Rows, then columns, then main and anti diagonal."""
        return _win_patterns(size)

    @staticmethod
    def counts(position: Position) -> Dict[Mark, int]:
        counts = {Mark.X: 0, Mark.O: 0, Mark.EMPTY: 0}
        for row in position.board:
            for mark in row:
                counts[mark] += 1
        return counts

    @staticmethod
    def player_to_move(position: Position) -> Mark:
        counts = BoardRules.counts(position)
        return Mark.O if counts[Mark.X] > counts[Mark.O] else Mark.X

    @staticmethod
    def empty_cells(position: Position) -> List[Cell]:
        """Empty cells in row-major order, top-left to bottom-right."""
        return [c for c in position.cells() if position.mark_at(c.row, c.col) == Mark.EMPTY]

    @staticmethod
    def winning_pattern(position: Position) -> Optional[WinPattern]:
        for pattern in BoardRules.win_patterns(position.size):
            first = position.mark_at(pattern[1][0].row, pattern[1][0].col)
            if first == Mark.EMPTY:
                continue
            if all(position.mark_at(c.row, c.col) == first for c in pattern[1]):
                return pattern
        return None

    @staticmethod
    def winner(position: Position) -> Optional[str]:
        """'X', 'O', 'draw', or None while the game is still open."""
        pattern = BoardRules.winning_pattern(position)
        if pattern is not None:
            cell = pattern[1][0]
            return position.mark_at(cell.row, cell.col).value
        if not BoardRules.empty_cells(position):
            return DRAW
        return None

    @staticmethod
    def is_terminal(position: Position) -> bool:
        return BoardRules.winner(position) is not None

    @staticmethod
    def is_winnable_by(position: Position, cells: Tuple[Cell, ...], player: Mark) -> bool:
        """True when no opposing mark sits on any cell of the pattern."""
        opponent = player.opponent
        return all(position.mark_at(c.row, c.col) != opponent for c in cells)

    @staticmethod
    def validate_position(position: Position) -> None:
        """Reject grids that cannot come from legal play."""
        if position.size < 1 or position.size > 10:
            raise MalformedPositionError(
                "Board size must be between 1 and 10",
                context={"size": position.size},
            )
        if len(position.board) != position.size or any(
            len(row) != position.size for row in position.board
        ):
            raise MalformedPositionError(
                "Board is not a square grid of the declared size",
                context={"size": position.size},
            )
        counts = BoardRules.counts(position)
        diff = counts[Mark.X] - counts[Mark.O]
        if diff not in (0, 1):
            raise MalformedPositionError(
                "Mark counts are impossible with X moving first",
                context={"x_count": counts[Mark.X], "o_count": counts[Mark.O]},
            )

    @staticmethod
    def validate_cell(position: Position, cell: Cell) -> None:
        if not (0 <= cell.row < position.size and 0 <= cell.col < position.size):
            raise MalformedPositionError(
                "Cell is outside the board", row=cell.row, col=cell.col
            )

    @staticmethod
    def validate_move(position: Position, cell: Cell) -> None:
        BoardRules.validate_cell(position, cell)
        if position.mark_at(cell.row, cell.col) != Mark.EMPTY:
            raise MalformedPositionError(
                "Cell is already occupied", row=cell.row, col=cell.col
            )

    @staticmethod
    def apply_move(position: Position, cell: Cell, player: Optional[Mark] = None) -> Position:
        """Place the mover's mark (or `player`) on an empty cell."""
        BoardRules.validate_move(position, cell)
        mark = player or BoardRules.player_to_move(position)
        return position.with_mark(cell, mark)
