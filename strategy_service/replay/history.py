"""Event-log helpers: rebuild positions and read/write compact move lists.

A game's history is the ordered list of MoveEvents the backend confirmed.
The position after any prefix of that list is a pure function of the
prefix, which is what makes revert-and-replay possible.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..board_rules import BoardRules
from ..errors import HistoryIndexError
from ..models import DEFAULT_BOARD_SIZE, Cell, EventKind, Mark, MoveEvent, Position

logger = logging.getLogger(__name__)

__all__ = [
    "events_from_backend",
    "format_moves",
    "parse_moves",
    "parse_preferred_cell",
    "reconstruct",
]

_MOVE_RE = re.compile(r"^([XO])(\d)(\d)$")


def reconstruct(
    events: Sequence[MoveEvent],
    upto_index: int,
    size: int = DEFAULT_BOARD_SIZE,
) -> Position:
    """Position after applying events[0..upto_index] to an empty board.

    `upto_index=-1` yields the empty board. A RESET event clears the grid.
    """
    if upto_index < -1 or upto_index >= len(events):
        raise HistoryIndexError(
            "Index is outside the event log",
            index=upto_index,
            log_length=len(events),
        )

    position = Position.empty(size)
    for event in events[: upto_index + 1]:
        if event.kind == EventKind.RESET:
            position = Position.empty(size)
            continue
        cell = event.cell
        BoardRules.validate_cell(position, cell)
        position = position.with_mark(cell, event.player)
    return position


def events_from_backend(raw_events: Iterable[Dict[str, Any]]) -> List[MoveEvent]:
    events = []
    for raw in raw_events:
        event = MoveEvent.from_backend(raw)
        if event is not None:
            events.append(event)
    return events


def parse_moves(moves: Optional[str], size: int = DEFAULT_BOARD_SIZE) -> List[MoveEvent]:
    """Build an event log from a compact list such as "X11,O00,X22".

    Entries are case-insensitive. Entries with a bad format, a cell off the
    board, the wrong player for the turn, or an occupied cell are logged and
    skipped; the remaining entries are kept in order.
    """
    if not moves:
        return []

    events: List[MoveEvent] = []
    position = Position.empty(size)
    expected = Mark.X
    for entry in moves.upper().split(","):
        entry = entry.strip()
        if not entry:
            continue
        match = _MOVE_RE.match(entry)
        if not match:
            logger.error("Invalid move format: %s. Expected XRC or ORC (e.g. X11)", entry)
            continue

        player = Mark(match.group(1))
        row, col = int(match.group(2)), int(match.group(3))
        if not (0 <= row < size and 0 <= col < size):
            logger.error("Invalid position: %d,%d", row, col)
            continue
        if player != expected:
            logger.error(
                "Invalid turn order: expected %s, got %s", expected.value, player.value
            )
            continue
        if position.mark_at(row, col) != Mark.EMPTY:
            logger.error("Position %d,%d already occupied", row, col)
            continue

        cell = Cell(row=row, col=col)
        position = position.with_mark(cell, player)
        events.append(MoveEvent.played(player, row, col))
        expected = player.opponent
    return events


def format_moves(events: Sequence[MoveEvent]) -> str:
    """Compact move list for the position the log ends in.

    Moves before the last reset do not contribute to that position and are
    left out.
    """
    moves: List[str] = []
    for event in events:
        if event.kind == EventKind.RESET:
            moves = []
        else:
            moves.append(event.to_move_string())
    return ",".join(moves)


def parse_preferred_cell(
    raw: Optional[str], size: int = DEFAULT_BOARD_SIZE
) -> Optional[Cell]:
    """Tie-break hint such as "22".

    Characters that are not a valid row or column digit for the board are
    stripped, and the first two that remain are used. Anything shorter is
    dropped.
    """
    if not raw:
        return None
    highest = min(size, 10) - 1
    digits = re.sub(rf"[^0-{highest}]", "", raw)[:2]
    if len(digits) != 2:
        return None
    return Cell.from_key(digits)
