"""
Pydantic Models for the Strategy Service
Mirrors the board/event shapes exchanged with the tic-tac-toe workflow backend
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_BOARD_SIZE = 3
DRAW = "draw"

# Backend event types are "XPlayed{row}{col}" / "OPlayed{row}{col}".
_PLAYED_EVENT_RE = re.compile(r"^([XO])Played(\d)(\d)$")
RESET_EVENT_TYPE = "GameReset"
RESET_MOVE_ID = "reset"


class Mark(str, Enum):
    """Cell mark enumeration"""
    EMPTY = ""
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Mark":
        if self is Mark.X:
            return Mark.O
        if self is Mark.O:
            return Mark.X
        return Mark.EMPTY


class EventKind(str, Enum):
    """Event log entry kind"""
    PLAYED = "played"
    RESET = "reset"


class Cell(BaseModel):
    """Board coordinate"""
    row: int
    col: int

    class Config:
        frozen = True

    def to_key(self) -> str:
        """Convert cell to string key ("02" for row 0, col 2)"""
        return f"{self.row}{self.col}"

    @classmethod
    def from_key(cls, key: str) -> "Cell":
        if len(key) != 2 or not key.isdigit():
            raise ValueError(f"Invalid cell key: {key!r}")
        return cls(row=int(key[0]), col=int(key[1]))


class Position(BaseModel):
    """N x N grid of marks. X moves first."""
    size: int = DEFAULT_BOARD_SIZE
    board: List[List[Mark]]

    class Config:
        frozen = True

    @classmethod
    def empty(cls, size: int = DEFAULT_BOARD_SIZE) -> "Position":
        return cls(size=size, board=[[Mark.EMPTY] * size for _ in range(size)])

    @classmethod
    def from_rows(cls, rows: List[List[str]]) -> "Position":
        """Build from plain strings, e.g. [["X", "", ""], ...]"""
        return cls(size=len(rows), board=[[Mark(v) for v in row] for row in rows])

    def mark_at(self, row: int, col: int) -> Mark:
        return self.board[row][col]

    def cells(self) -> List[Cell]:
        """All cells in row-major order"""
        return [Cell(row=r, col=c) for r in range(self.size) for c in range(self.size)]

    def with_mark(self, cell: Cell, mark: Mark) -> "Position":
        board = [list(row) for row in self.board]
        board[cell.row][cell.col] = mark
        return Position(size=self.size, board=board)

    def to_rows(self) -> List[List[str]]:
        return [[m.value for m in row] for row in self.board]

    def to_key(self) -> str:
        """Stable string of the grid, '.' for empty cells"""
        return "/".join("".join(m.value or "." for m in row) for row in self.board)


class MoveEvent(BaseModel):
    """Confirmed backend transition: a played mark or a reset marker."""
    kind: EventKind
    player: Optional[Mark] = None
    row: Optional[int] = None
    col: Optional[int] = None

    class Config:
        frozen = True

    @classmethod
    def played(cls, player: Mark, row: int, col: int) -> "MoveEvent":
        return cls(kind=EventKind.PLAYED, player=player, row=row, col=col)

    @classmethod
    def reset(cls) -> "MoveEvent":
        return cls(kind=EventKind.RESET)

    @classmethod
    def from_backend(cls, raw: Dict[str, Any]) -> Optional["MoveEvent"]:
        """Parse a backend event entry; returns None for unrelated event types."""
        event_type = str(raw.get("type") or "")
        match = _PLAYED_EVENT_RE.match(event_type)
        if match:
            return cls.played(Mark(match.group(1)), int(match.group(2)), int(match.group(3)))
        if event_type == RESET_EVENT_TYPE:
            return cls.reset()
        logger.debug("Ignoring backend event of type %r", event_type)
        return None

    @property
    def cell(self) -> Optional[Cell]:
        if self.kind != EventKind.PLAYED:
            return None
        return Cell(row=self.row, col=self.col)

    @property
    def event_type(self) -> str:
        if self.kind == EventKind.RESET:
            return RESET_EVENT_TYPE
        return f"{self.player.value}Played{self.row}{self.col}"

    @property
    def transition_id(self) -> str:
        """Backend move identifier that produces this event"""
        if self.kind == EventKind.RESET:
            return RESET_MOVE_ID
        return move_id_for(self.player, self.row, self.col)

    def to_move_string(self) -> str:
        """Compact form used in shareable move lists, e.g. 'X11'"""
        if self.kind == EventKind.RESET:
            return RESET_MOVE_ID
        return f"{self.player.value}{self.row}{self.col}"

    def describe(self) -> str:
        if self.kind == EventKind.RESET:
            return "Game reset"
        return f"{self.player.value} played at ({self.row}, {self.col})"


def move_id_for(player: Mark, row: int, col: int) -> str:
    """Backend transition id for a mark, e.g. x_play_11"""
    return f"{player.value.lower()}_play_{row}{col}"


class CellScore(BaseModel):
    """Final accumulator masses and signed score for one candidate cell"""
    win_x: float = 0.0
    win_o: float = 0.0
    score: float = 0.0
    failed: bool = False


class ScoreMap(BaseModel):
    """Per-cell strategic values for one position, from the mover's perspective.

    Occupied cells carry 0.0 by convention.
    """
    player: Mark
    position_key: str
    values: Dict[str, float] = Field(default_factory=dict)
    details: Dict[str, CellScore] = Field(default_factory=dict)

    def value(self, cell: Cell) -> float:
        return self.values.get(cell.to_key(), 0.0)
