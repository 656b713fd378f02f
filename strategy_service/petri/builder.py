"""Network Builder: board position -> token-flow network.

The net encodes every legal continuation and every still-open line:

    P{rc}     occupancy, 1 while the cell is empty
    X{rc}     X history, 1 once X holds the cell
    O{rc}     O history, 1 once O holds the cell
    Next      turn control, 0 when X is to move, 1 when O is
    WinX/WinO win accumulators

    PlayX{rc}: P{rc} -> PlayX{rc} -> X{rc} + Next
    PlayO{rc}: Next + P{rc} -> PlayO{rc} -> O{rc}
    X{line} / O{line}: read of the line's history places -> WinX / WinO

Move transitions exist only for empty cells and win transitions only for
lines the player can still complete. Everything pruned would have zero
flux under mass action anyway, so scores are unaffected.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..board_rules import BoardRules
from ..models import Cell, Mark, Position
from .net import PetriNet, PlaceRole, TransitionRole

logger = logging.getLogger(__name__)

__all__ = [
    "NetworkBuilder",
    "TURN_PLACE",
    "WIN_PLACES",
    "history_place",
    "move_transition",
    "occupancy_place",
]

TURN_PLACE = "Next"
WIN_PLACES = {Mark.X: "WinX", Mark.O: "WinO"}


def occupancy_place(cell: Cell) -> str:
    return f"P{cell.to_key()}"


def history_place(player: Mark, cell: Cell) -> str:
    return f"{player.value}{cell.to_key()}"


def move_transition(player: Mark, cell: Cell) -> str:
    return f"Play{player.value}{cell.to_key()}"


class NetworkBuilder:
    """Builds the strategic-value network for a position.

    Output depends only on (position, hypothetical_move): identifiers and arc
    order are the same on every call.
    """

    def build(self, position: Position, hypothetical_move: Optional[Cell] = None) -> PetriNet:
        BoardRules.validate_position(position)
        name = f"ttt:{position.to_key()}"
        if hypothetical_move is not None:
            BoardRules.validate_move(position, hypothetical_move)
            mover = BoardRules.player_to_move(position)
            position = position.with_mark(hypothetical_move, mover)
            name = f"{name}+{mover.value}{hypothetical_move.to_key()}"

        net = PetriNet(name=name)
        cells = position.cells()

        for cell in cells:
            empty = position.mark_at(cell.row, cell.col) == Mark.EMPTY
            net.add_place(occupancy_place(cell), 1 if empty else 0, capacity=1,
                          role=PlaceRole.OCCUPANCY)
        for player in (Mark.X, Mark.O):
            for cell in cells:
                held = position.mark_at(cell.row, cell.col) == player
                net.add_place(history_place(player, cell), 1 if held else 0, capacity=1,
                              role=PlaceRole.HISTORY)

        next_player = BoardRules.player_to_move(position)
        net.add_place(TURN_PLACE, 0 if next_player == Mark.X else 1, capacity=1,
                      role=PlaceRole.TURN)
        for player in (Mark.X, Mark.O):
            net.add_place(WIN_PLACES[player], 0, role=PlaceRole.WIN)

        self._add_move_transitions(net, position)
        self._add_win_transitions(net, position)

        logger.debug("Built %r", net)
        return net

    def _add_move_transitions(self, net: PetriNet, position: Position) -> None:
        empty = BoardRules.empty_cells(position)

        # X hands the turn token over; O takes it back.
        for cell in empty:
            tid = move_transition(Mark.X, cell)
            net.add_transition(tid, TransitionRole.MOVE)
            net.add_arc(occupancy_place(cell), tid)
            net.add_arc(tid, history_place(Mark.X, cell))
            net.add_arc(tid, TURN_PLACE)

        for cell in empty:
            tid = move_transition(Mark.O, cell)
            net.add_transition(tid, TransitionRole.MOVE)
            net.add_arc(TURN_PLACE, tid)
            net.add_arc(occupancy_place(cell), tid)
            net.add_arc(tid, history_place(Mark.O, cell))

    def _add_win_transitions(self, net: PetriNet, position: Position) -> None:
        for player in (Mark.X, Mark.O):
            for pattern_name, pattern_cells in BoardRules.win_patterns(position.size):
                if not BoardRules.is_winnable_by(position, pattern_cells, player):
                    continue
                tid = f"{player.value}{pattern_name}"
                net.add_transition(tid, TransitionRole.WIN)
                for cell in pattern_cells:
                    net.add_read_arc(history_place(player, cell), tid)
                net.add_arc(tid, WIN_PLACES[player])
