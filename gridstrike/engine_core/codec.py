"""
Board Codec - Persisted documents to Board and back.

Document shape:
    {
        "cards": {"host_0": {"id", "owner", "col", "row", "hp", "maxHp",
                             "atk", "atkRange", "speed", "stealth",
                             "stealthRegeneration", "isHidden"}},
        "traps": [{"col", "row"}],
        "gameOver": false
    }

Decoding validates and normalizes in one pass. Structural problems raise
BoardDecodeError; bad positions are corrected and logged, never raised.
Authoritative documents always carry isHidden=false: redaction belongs to
the visibility filter only.
"""

from __future__ import annotations
from typing import Any
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import BoardDecodeError
from .state import Board, Piece, Position, Side, Trap, normalize_position, place_pieces

logger = logging.getLogger(__name__)


# =============================================================================
# Document models
# =============================================================================

_PIECE_DEFAULTS = {
    "attack": 1,
    "attack_range": 1,
    "speed": 0,
    "stealth": 0,
    "stealth_regeneration": 0,
}


class PieceDocument(BaseModel):
    """One card as stored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    owner: str | None = None
    col: Any = None
    row: Any = None
    hp: int
    max_hp: int | None = Field(None, alias="maxHp")
    attack: int = Field(1, alias="atk")
    attack_range: int = Field(1, alias="atkRange")
    speed: int = 0
    stealth: int = 0
    stealth_regeneration: int = Field(0, alias="stealthRegeneration")
    is_hidden: bool = Field(False, alias="isHidden")

    @field_validator(*_PIECE_DEFAULTS, mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        if value is None:
            return _PIECE_DEFAULTS[info.field_name]
        return value


class TrapDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    col: int
    row: int


class BoardDocument(BaseModel):
    """A whole board as stored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cards: dict[str, PieceDocument] = Field(default_factory=dict)
    traps: list[TrapDocument] = Field(default_factory=list)
    game_over: bool = Field(False, alias="gameOver")

    @field_validator("cards", "traps", "game_over", mode="before")
    @classmethod
    def _null_to_empty(cls, value, info):
        if value is None:
            return {"cards": {}, "traps": [], "game_over": False}[info.field_name]
        return value


# =============================================================================
# Decode
# =============================================================================


def decode_board(document: Any) -> Board:
    """
    Rebuild a Board from a persisted document.

    Raises BoardDecodeError on structural problems.
    """
    if not isinstance(document, dict):
        raise BoardDecodeError("Board document must be an object")

    try:
        doc = BoardDocument.model_validate(document)
    except ValidationError as e:
        raise BoardDecodeError(
            "Invalid board document",
            errors=[
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
        )

    problems: list[str] = []
    pieces: list[Piece] = []
    for key, piece_doc in doc.cards.items():
        piece = _decode_piece(key, piece_doc, problems)
        if piece is not None:
            pieces.append(piece)
    if problems:
        raise BoardDecodeError("Invalid board document", errors=problems)

    try:
        board = place_pieces(Board(game_over=doc.game_over), pieces)
    except ValueError as e:
        raise BoardDecodeError("Invalid board document", errors=[str(e)]) from e
    board.traps = _decode_traps(doc.traps)
    return board


def _decode_piece(key: str, doc: PieceDocument, problems: list[str]) -> Piece | None:
    if doc.id is not None and doc.id != key:
        logger.warning("Piece stored under %r claims id %r; using the key", key, doc.id)

    side = _decode_side(key, doc.owner)
    if side is None:
        problems.append(f"cards.{key}: cannot determine owner from {doc.owner!r}")
        return None

    return Piece(
        id=key,
        side=side,
        position=normalize_position(key, side, doc.col, doc.row),
        hp=doc.hp,
        max_hp=doc.max_hp if doc.max_hp is not None else doc.hp,
        attack=doc.attack,
        attack_range=doc.attack_range,
        speed=doc.speed,
        stealth=doc.stealth,
        stealth_regeneration=doc.stealth_regeneration,
    )


def _decode_side(piece_id: str, owner: str | None) -> Side | None:
    if owner is not None:
        try:
            return Side(owner)
        except ValueError:
            pass
        try:
            return Side.from_role(owner)
        except ValueError:
            return None
    return Side.from_piece_id(piece_id)


def _decode_traps(docs: list[TrapDocument]) -> list[Trap]:
    traps: list[Trap] = []
    seen: set[Position] = set()
    for doc in docs:
        position = Position(doc.col, doc.row)
        if not position.in_bounds():
            logger.warning("Dropping trap outside the board at %s", position.key)
            continue
        if position in seen:
            logger.warning("Dropping duplicate trap at %s", position.key)
            continue
        seen.add(position)
        traps.append(Trap(position))
    return traps


# =============================================================================
# Encode
# =============================================================================


def encode_piece(piece: Piece) -> dict[str, Any]:
    return PieceDocument(
        id=piece.id,
        owner=piece.side.value,
        col=piece.position.col,
        row=piece.position.row,
        hp=piece.hp,
        max_hp=piece.max_hp,
        attack=piece.attack,
        attack_range=piece.attack_range,
        speed=piece.speed,
        stealth=piece.stealth,
        stealth_regeneration=piece.stealth_regeneration,
        is_hidden=False,
    ).model_dump(by_alias=True)


def encode_board(board: Board) -> dict[str, Any]:
    """Serialize a Board for authoritative storage."""
    return {
        "cards": {piece_id: encode_piece(p) for piece_id, p in board.pieces.items()},
        "traps": [trap.to_dict() for trap in board.traps],
        "gameOver": board.game_over,
    }
