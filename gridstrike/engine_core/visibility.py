"""
Visibility Filter - What one side is allowed to see of the board.

A pure function of (board, viewer). Own pieces are always shown in full.
Enemy pieces are shown in full once their stealth reaches 0; until then the
viewer only learns that something occupies the cell.

Traps are passed through to both sides unfiltered. Whether traps should be
hidden from the side that did not lay them is an open rules question.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from .state import Board, Piece, Position, Side, Trap


@dataclass(frozen=True)
class PieceView:
    """A piece as one viewer sees it."""
    id: str
    side: Side
    position: Position
    concealed: bool
    hp: int = 0
    max_hp: int = 0
    attack: int = 0
    attack_range: int = 0
    speed: int = 0
    stealth: int = 0
    stealth_regeneration: int = 0

    @classmethod
    def full(cls, piece: Piece) -> PieceView:
        return cls(
            id=piece.id,
            side=piece.side,
            position=piece.position,
            concealed=False,
            hp=piece.hp,
            max_hp=piece.max_hp,
            attack=piece.attack,
            attack_range=piece.attack_range,
            speed=piece.speed,
            stealth=piece.stealth,
            stealth_regeneration=piece.stealth_regeneration,
        )

    @classmethod
    def stub(cls, piece: Piece) -> PieceView:
        """Identity and strength withheld; stats zeroed."""
        return cls(id=piece.id, side=piece.side, position=piece.position, concealed=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.side.value,
            "col": self.position.col,
            "row": self.position.row,
            "hp": self.hp,
            "maxHp": self.max_hp,
            "atk": self.attack,
            "atkRange": self.attack_range,
            "speed": self.speed,
            "stealth": self.stealth,
            "stealthRegeneration": self.stealth_regeneration,
            "isHidden": self.concealed,
        }


@dataclass(frozen=True)
class BoardView:
    """A redacted board for one viewer."""
    viewer: Side
    pieces: dict[str, PieceView] = field(default_factory=dict)
    traps: tuple[Trap, ...] = ()
    game_over: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "cards": {piece_id: view.to_dict() for piece_id, view in self.pieces.items()},
            "traps": [trap.to_dict() for trap in self.traps],
            "gameOver": self.game_over,
        }


def concealed_piece_ids(board: Board, viewer: Side) -> set[str]:
    """Ids of enemy pieces the viewer cannot identify."""
    return {
        piece.id for piece in board.pieces.values()
        if not piece.is_visible_to(viewer)
    }


def filter_board(board: Board, viewer: Side) -> BoardView:
    """Build the viewer's redacted view. Never mutates the board."""
    hidden = concealed_piece_ids(board, viewer)
    pieces = {
        piece.id: PieceView.stub(piece) if piece.id in hidden else PieceView.full(piece)
        for piece in board.pieces.values()
    }
    return BoardView(
        viewer=viewer,
        pieces=pieces,
        traps=tuple(board.traps),
        game_over=board.game_over,
    )
