"""
Action System - The closed set of per-turn actions.

Each side submits exactly one action per turn:
1. Move a piece to a cell
2. Attack whatever enemy stands on a cell
3. Place a trap on a cell

Unknown action strings are rejected at decode time rather than silently
ignored during resolution.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import InvalidArgumentError
from .state import Position


class ActionKind(Enum):
    """Types of actions a piece can take."""
    MOVE = "move"
    ATTACK = "attack"
    PLACE_TRAP = "placeTrap"


# Legacy transport shape: action/actionType + skillSubtype
_LEGACY_SKILL_SUBTYPES = {
    "atk": ActionKind.ATTACK,
    "trap": ActionKind.PLACE_TRAP,
}


@dataclass(frozen=True)
class Action:
    """
    One side's action for a turn.

    Actions are:
    - Validated against the board when submitted
    - Ordered by the acting piece's speed during resolution
    - Logged with the turn for replay
    """
    piece_id: str
    kind: ActionKind
    destination: Position

    @classmethod
    def move(cls, piece_id: str, col: int, row: int) -> Action:
        """Factory for a move."""
        return cls(piece_id=piece_id, kind=ActionKind.MOVE, destination=Position(col, row))

    @classmethod
    def attack(cls, piece_id: str, col: int, row: int) -> Action:
        """Factory for an attack on a cell."""
        return cls(piece_id=piece_id, kind=ActionKind.ATTACK, destination=Position(col, row))

    @classmethod
    def place_trap(cls, piece_id: str, col: int, row: int) -> Action:
        """Factory for a trap placement."""
        return cls(piece_id=piece_id, kind=ActionKind.PLACE_TRAP, destination=Position(col, row))

    def to_dict(self) -> dict[str, Any]:
        return {
            "pieceId": self.piece_id,
            "kind": self.kind.value,
            "destination": self.destination.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        """
        Decode an action payload.

        Accepts {pieceId, kind, destination} and the older
        {cardId, action|actionType, skillSubtype, destination} shape.
        """
        if not isinstance(data, dict):
            raise InvalidArgumentError("Action payload must be an object")

        piece_id = data.get("pieceId") or data.get("cardId")
        if not isinstance(piece_id, str) or not piece_id:
            raise InvalidArgumentError("Action is missing a piece id")

        return cls(
            piece_id=piece_id,
            kind=_decode_kind(data),
            destination=_decode_destination(data.get("destination")),
        )


def _decode_kind(data: dict[str, Any]) -> ActionKind:
    if "kind" in data:
        try:
            return ActionKind(data["kind"])
        except ValueError:
            raise InvalidArgumentError(
                f"Unknown action kind: {data['kind']!r}",
                context={"allowed": [k.value for k in ActionKind]},
            )

    legacy = data.get("action") or data.get("actionType")
    if legacy == "move":
        return ActionKind.MOVE
    if legacy == "skill":
        subtype = data.get("skillSubtype")
        if subtype in _LEGACY_SKILL_SUBTYPES:
            return _LEGACY_SKILL_SUBTYPES[subtype]
        raise InvalidArgumentError(f"Unknown skill subtype: {subtype!r}")
    raise InvalidArgumentError(f"Unknown action type: {legacy!r}")


def _decode_destination(value: Any) -> Position:
    if not isinstance(value, dict):
        raise InvalidArgumentError("Action is missing a destination")
    try:
        col, row = value["col"], value["row"]
    except KeyError as e:
        raise InvalidArgumentError(f"Destination is missing {e.args[0]!r}")
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (col, row)):
        raise InvalidArgumentError(
            "Destination coordinates must be integers",
            context={"col": col, "row": row},
        )
    return Position(col, row)
