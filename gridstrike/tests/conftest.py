"""
Pytest fixtures for GridStrike tests.
"""

import pytest

from ..engine_core.state import Board, Piece, Position, Side, Trap, create_initial_board
from ..session import Match, MatchManager


def make_piece(
    piece_id: str,
    col: int,
    row: int,
    hp: int = 3,
    speed: int = 0,
    stealth: int = 3,
) -> Piece:
    """Build a piece whose side comes from its id prefix."""
    return Piece(
        id=piece_id,
        side=Side.from_piece_id(piece_id),
        position=Position(col, row),
        hp=hp,
        max_hp=max(hp, 3),
        speed=speed,
        stealth=stealth,
    )


def make_board(*pieces: Piece, traps=()) -> Board:
    """Build a board from pieces and (col, row) trap cells."""
    return Board(
        pieces={p.id: p for p in pieces},
        traps=[Trap(Position(col, row)) for col, row in traps],
    )


@pytest.fixture
def initial_board() -> Board:
    """The starting roster."""
    return create_initial_board()


@pytest.fixture
def duel_board() -> Board:
    """
    One piece per side, facing each other across an empty row.

    host_0 at (0,4) speed 4, guest_0 at (0,2) speed 3.
    """
    return make_board(
        make_piece("host_0", 0, 4, speed=4),
        make_piece("guest_0", 0, 2, speed=3),
    )


@pytest.fixture
def manager() -> MatchManager:
    return MatchManager()


@pytest.fixture
def match(manager: MatchManager) -> Match:
    """A fresh match: alice hosts, bob is the guest."""
    return manager.create_match("alice", "bob", match_id="m1")
