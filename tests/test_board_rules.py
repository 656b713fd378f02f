"""Tests for board-level rules: parity, winner detection and move validation."""

import pytest

from strategy_service.board_rules import BoardRules
from strategy_service.errors import MalformedPositionError
from strategy_service.models import Cell, Mark, Position


class TestParity:
    def test_x_moves_first(self):
        assert BoardRules.player_to_move(Position.empty()) == Mark.X

    def test_o_moves_after_x(self, position_factory):
        position = position_factory("...", ".X.", "...")
        assert BoardRules.player_to_move(position) == Mark.O

    def test_x_moves_when_counts_equal(self, position_factory):
        position = position_factory("O..", ".X.", "...")
        assert BoardRules.player_to_move(position) == Mark.X

    def test_counts(self, position_factory):
        counts = BoardRules.counts(position_factory("XO.", ".X.", "..."))
        assert counts[Mark.X] == 2
        assert counts[Mark.O] == 1
        assert counts[Mark.EMPTY] == 6


class TestWinner:
    def test_open_game_has_no_winner(self, position_factory):
        assert BoardRules.winner(position_factory("XO.", ".X.", "...")) is None

    def test_row_win(self, position_factory):
        position = position_factory("XXX", "OO.", "...")
        assert BoardRules.winner(position) == "X"
        assert BoardRules.winning_pattern(position)[0] == "Row0"

    def test_anti_diagonal_win(self, position_factory):
        position = position_factory("XXO", "XO.", "O..")
        assert BoardRules.winner(position) == "O"
        assert BoardRules.winning_pattern(position)[0] == "Dg1"

    def test_full_board_draw(self, position_factory):
        position = position_factory("XOX", "XOO", "OXX")
        assert BoardRules.winner(position) == "draw"
        assert BoardRules.is_terminal(position)

    def test_patterns_for_three_by_three(self):
        names = [name for name, _ in BoardRules.win_patterns(3)]
        assert names == [
            "Row0", "Row1", "Row2", "Col0", "Col1", "Col2", "Dg0", "Dg1",
        ]

    def test_patterns_scale_with_board_size(self):
        patterns = BoardRules.win_patterns(4)
        assert len(patterns) == 10
        assert all(len(cells) == 4 for _, cells in patterns)


class TestEmptyCells:
    def test_row_major_order(self, position_factory):
        cells = BoardRules.empty_cells(position_factory("X.O", "...", "..."))
        assert [c.to_key() for c in cells] == ["01", "10", "11", "12", "20", "21", "22"]


class TestValidation:
    def test_rejects_impossible_counts(self, position_factory):
        with pytest.raises(MalformedPositionError) as exc_info:
            BoardRules.validate_position(position_factory("XX.", "...", "..."))
        assert exc_info.value.context["x_count"] == 2
        assert exc_info.value.context["o_count"] == 0

    def test_rejects_o_ahead(self, position_factory):
        with pytest.raises(MalformedPositionError):
            BoardRules.validate_position(position_factory("O..", "...", "..."))

    def test_rejects_ragged_grid(self):
        position = Position(size=3, board=[[Mark.EMPTY] * 3, [Mark.EMPTY] * 2, [Mark.EMPTY] * 3])
        with pytest.raises(MalformedPositionError):
            BoardRules.validate_position(position)

    def test_rejects_out_of_range_cell(self):
        with pytest.raises(MalformedPositionError) as exc_info:
            BoardRules.validate_move(Position.empty(), Cell(row=3, col=0))
        assert exc_info.value.context == {"row": 3, "col": 0}

    def test_rejects_occupied_cell(self, position_factory):
        with pytest.raises(MalformedPositionError):
            BoardRules.validate_move(position_factory("...", ".X.", "..."), Cell(row=1, col=1))

    def test_apply_move_places_movers_mark(self, position_factory):
        position = BoardRules.apply_move(position_factory("...", ".X.", "..."), Cell(row=0, col=0))
        assert position.mark_at(0, 0) == Mark.O
