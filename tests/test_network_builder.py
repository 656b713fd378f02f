"""Tests for the position -> network encoding."""

import pytest

from strategy_service.errors import MalformedPositionError
from strategy_service.models import Cell, Position
from strategy_service.petri.builder import NetworkBuilder
from strategy_service.petri.net import ArcKind, PetriNet, PlaceRole, TransitionRole


@pytest.fixture
def builder() -> NetworkBuilder:
    return NetworkBuilder()


class TestEmptyBoardStructure:
    def test_place_and_transition_counts(self, builder):
        net = builder.build(Position.empty())
        assert len(net.places) == 30
        assert len(net.transitions) == 34

    def test_initial_marking(self, builder):
        marking = builder.build(Position.empty()).initial_state()
        assert all(marking[f"P{r}{c}"] == 1 for r in range(3) for c in range(3))
        assert all(marking[f"X{r}{c}"] == 0 for r in range(3) for c in range(3))
        assert marking["Next"] == 0
        assert marking["WinX"] == 0 and marking["WinO"] == 0

    def test_x_move_wiring(self, builder):
        net = builder.build(Position.empty())
        inputs = [(a.source, a.kind) for a in net.inputs("PlayX11")]
        outputs = sorted(a.target for a in net.outputs("PlayX11"))
        assert inputs == [("P11", ArcKind.NORMAL)]
        assert outputs == ["Next", "X11"]

    def test_o_move_takes_turn_token(self, builder):
        net = builder.build(Position.empty())
        inputs = sorted(a.source for a in net.inputs("PlayO11"))
        outputs = [a.target for a in net.outputs("PlayO11")]
        assert inputs == ["Next", "P11"]
        assert outputs == ["O11"]

    def test_win_transitions_use_read_arcs(self, builder):
        net = builder.build(Position.empty())
        inputs = list(net.inputs("XDg1"))
        assert [a.source for a in inputs] == ["X02", "X11", "X20"]
        assert all(a.kind == ArcKind.READ for a in inputs)
        assert [a.target for a in net.outputs("XDg1")] == ["WinX"]

    def test_history_places_never_consumed(self, builder):
        net = builder.build(Position.empty())
        for place in net.places_with_role(PlaceRole.HISTORY):
            assert all(a.kind == ArcKind.READ for a in net.arcs_from_place(place.label))


class TestHypotheticalMove:
    def test_move_applied_for_mover(self, builder):
        net = builder.build(Position.empty(), Cell(row=1, col=1))
        marking = net.initial_state()
        assert marking["P11"] == 0
        assert marking["X11"] == 1
        assert marking["Next"] == 1
        assert net.name.endswith("+X11")

    def test_o_hypothetical_hands_turn_back(self, builder, position_factory):
        net = builder.build(position_factory("...", ".X.", "..."), Cell(row=0, col=0))
        marking = net.initial_state()
        assert marking["O00"] == 1
        assert marking["Next"] == 0

    def test_occupied_cells_have_no_moves(self, builder):
        net = builder.build(Position.empty(), Cell(row=1, col=1))
        assert "PlayX11" not in net.transitions
        assert "PlayO11" not in net.transitions
        assert len(net.transitions_with_role(TransitionRole.MOVE)) == 16

    def test_blocked_patterns_are_pruned(self, builder):
        net = builder.build(Position.empty(), Cell(row=1, col=1))
        win = {t.label for t in net.transitions_with_role(TransitionRole.WIN)}
        assert {"XRow1", "XCol1", "XDg0", "XDg1"} <= win
        assert not {"ORow1", "OCol1", "ODg0", "ODg1"} & win
        assert len(win) == 12

    def test_rejects_occupied_hypothetical(self, builder, position_factory):
        with pytest.raises(MalformedPositionError):
            builder.build(position_factory("...", ".X.", "..."), Cell(row=1, col=1))

    def test_rejects_out_of_range_hypothetical(self, builder):
        with pytest.raises(MalformedPositionError):
            builder.build(Position.empty(), Cell(row=0, col=3))


class TestDeterminism:
    def test_identical_structure_on_every_call(self, builder, position_factory):
        position = position_factory("X..", ".O.", "...")
        first = builder.build(position, Cell(row=2, col=2))
        second = NetworkBuilder().build(position, Cell(row=2, col=2))
        assert first.structure_key() == second.structure_key()
        assert first.initial_state() == second.initial_state()

    def test_larger_board(self, builder):
        net = builder.build(Position.empty(4))
        # 16 occupancy + 32 history + Next + 2 accumulators
        assert len(net.places) == 51
        # 32 moves + 2 * 10 lines
        assert len(net.transitions) == 52


class TestJsonLd:
    def test_read_arcs_export_as_pairs(self, builder):
        data = builder.build(Position.empty()).to_dict()
        assert data["@context"] == "https://pflow.xyz/schema"
        pairs = [(a["source"], a["target"]) for a in data["arcs"]]
        assert ("X00", "XRow0") in pairs
        assert ("XRow0", "X00") in pairs

    def test_round_trip_restores_read_arcs(self, builder, position_factory):
        net = builder.build(position_factory("X..", ".O.", "..."), Cell(row=0, col=2))
        restored = PetriNet.from_dict(net.to_dict())
        assert restored.structure_key() == net.structure_key()
        assert restored.initial_state() == net.initial_state()
