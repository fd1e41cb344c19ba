"""
Tests for the visibility filter.
"""

from ..engine_core.codec import encode_board
from ..engine_core.state import Side
from ..engine_core.visibility import concealed_piece_ids, filter_board
from .conftest import make_board, make_piece


class TestFilterBoard:
    """Tests for per-viewer redaction."""

    def test_own_pieces_always_full(self, initial_board):
        view = filter_board(initial_board, Side.ATTACKER)
        host = view.pieces["host_0"]
        assert not host.concealed
        assert host.hp == 3
        assert host.speed == 4

    def test_stealthed_enemy_is_stub(self, initial_board):
        """Position is revealed; strength is not."""
        view = filter_board(initial_board, Side.ATTACKER)
        guest = view.pieces["guest_0"]
        assert guest.concealed
        assert guest.position == initial_board.get_piece("guest_0").position
        assert guest.hp == 0
        assert guest.max_hp == 0
        assert guest.attack == 0
        assert guest.speed == 0
        assert guest.stealth == 0

    def test_revealed_enemy_is_full(self):
        board = make_board(
            make_piece("host_0", 0, 4),
            make_piece("guest_0", 0, 3, hp=2, stealth=0),
        )
        view = filter_board(board, Side.ATTACKER)
        assert not view.pieces["guest_0"].concealed
        assert view.pieces["guest_0"].hp == 2

    def test_views_are_asymmetric(self):
        board = make_board(
            make_piece("host_0", 0, 4, stealth=0),
            make_piece("guest_0", 0, 3, stealth=2),
        )
        assert concealed_piece_ids(board, Side.ATTACKER) == {"guest_0"}
        assert concealed_piece_ids(board, Side.DEFENDER) == set()

    def test_traps_pass_through(self):
        board = make_board(make_piece("host_0", 0, 6), traps=[(1, 3)])
        for viewer in Side:
            assert filter_board(board, viewer).to_dict()["traps"] == [{"col": 1, "row": 3}]

    def test_filter_does_not_mutate(self, initial_board):
        before = encode_board(initial_board)
        filter_board(initial_board, Side.DEFENDER)
        assert encode_board(initial_board) == before

    def test_to_dict_flags_hidden(self, initial_board):
        cards = filter_board(initial_board, Side.DEFENDER).to_dict()["cards"]
        assert cards["host_1"]["isHidden"] is True
        assert cards["host_1"]["hp"] == 0
        assert cards["guest_1"]["isHidden"] is False
        assert cards["guest_1"]["owner"] == "guest"

    def test_dead_enemy_still_listed(self):
        board = make_board(
            make_piece("host_0", 0, 4),
            make_piece("guest_0", 0, 3, hp=0, stealth=0),
        )
        view = filter_board(board, Side.ATTACKER)
        assert view.pieces["guest_0"].hp == 0
        assert not view.pieces["guest_0"].concealed
