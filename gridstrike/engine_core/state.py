"""
Game State - Pieces, traps and the board for one match.

Design principles:
- Plain data: predicates only, no side effects
- Serializable: the codec turns a Board into a persisted document and back
- Tolerant on construction: positions are clamped rather than rejected,
  because state may be rebuilt from stale or hand-edited documents
- The viewer is always an explicit argument, never ambient
"""

from __future__ import annotations
from dataclasses import dataclass, field
from copy import deepcopy
from enum import Enum
import logging
import math

logger = logging.getLogger(__name__)


BOARD_WIDTH = 3
BOARD_HEIGHT = 7
PIECES_PER_SIDE = 3
INITIAL_STEALTH = 3


class Side(Enum):
    """The two match participants."""
    ATTACKER = "host"
    DEFENDER = "guest"

    @property
    def opponent(self) -> Side:
        return Side.DEFENDER if self is Side.ATTACKER else Side.ATTACKER

    @property
    def home_row(self) -> int:
        """Row the side's pieces start on."""
        return BOARD_HEIGHT - 1 if self is Side.ATTACKER else 0

    @property
    def forward(self) -> int:
        """Row delta pointing toward the opposing home row."""
        return -1 if self is Side.ATTACKER else 1

    @property
    def role(self) -> str:
        """Transport participant role for this side."""
        return "player1" if self is Side.ATTACKER else "player2"

    @classmethod
    def from_role(cls, role: str) -> Side:
        """Map a participant role (player1/player2) to a side."""
        if role == "player1":
            return cls.ATTACKER
        if role == "player2":
            return cls.DEFENDER
        raise ValueError(f"Unknown participant role: {role!r}")

    @classmethod
    def from_piece_id(cls, piece_id: str) -> Side | None:
        """Derive the owning side from an id prefix like 'host_1'."""
        for side in cls:
            if piece_id.startswith(side.value):
                return side
        return None


@dataclass(frozen=True, order=True)
class Position:
    """A grid cell. Columns [0, BOARD_WIDTH), rows [0, BOARD_HEIGHT)."""
    col: int
    row: int

    @property
    def key(self) -> str:
        return f"{self.col},{self.row}"

    def in_bounds(self) -> bool:
        return 0 <= self.col < BOARD_WIDTH and 0 <= self.row < BOARD_HEIGHT

    def ahead(self, side: Side) -> Position:
        """The cell directly in front of a piece of `side` standing here."""
        return Position(self.col, self.row + side.forward)

    def to_dict(self) -> dict[str, int]:
        return {"col": self.col, "row": self.row}

    @classmethod
    def from_dict(cls, data: dict) -> Position:
        return cls(col=int(data["col"]), row=int(data["row"]))


def piece_ordinal(piece_id: str) -> int | None:
    """Slot index encoded in a piece id ('guest_2' -> 2)."""
    if "_" not in piece_id:
        return None
    try:
        return int(piece_id.split("_")[1], 10)
    except ValueError:
        return None


def default_position(piece_id: str, side: Side) -> Position:
    """Front row for the owning side, column from the slot index."""
    col = 0
    ordinal = piece_ordinal(piece_id)
    if ordinal is not None and 0 <= ordinal < BOARD_WIDTH:
        col = ordinal
    return Position(col, side.home_row)


def _as_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper - 1))


def normalize_position(piece_id: str, side: Side, col, row) -> Position:
    """
    Build an in-bounds position from possibly-bad input.

    Non-integers are floored, out-of-range values clamped, and missing or
    non-numeric coordinates replaced with the side's default. Any correction
    is logged.
    """
    fallback = default_position(piece_id, side)
    col_number = _as_number(col)
    row_number = _as_number(row)

    raw_col = math.floor(col_number) if col_number is not None else fallback.col
    raw_row = math.floor(row_number) if row_number is not None else fallback.row
    position = Position(_clamp(raw_col, BOARD_WIDTH), _clamp(raw_row, BOARD_HEIGHT))

    if (
        col_number is None
        or row_number is None
        or position.col != col_number
        or position.row != row_number
    ):
        logger.warning(
            "Piece %s position fixed from (%r, %r) to (%d, %d)",
            piece_id, col, row, position.col, position.row,
        )
    return position


@dataclass
class Piece:
    """
    A single card on the board.

    `side` never changes after creation. `hp` never exceeds `max_hp`, and
    neither `hp` nor `stealth` goes below zero.
    """
    id: str
    side: Side
    position: Position
    hp: int
    max_hp: int
    attack: int = 1
    attack_range: int = 1
    speed: int = 0
    stealth: int = 0
    stealth_regeneration: int = 0  # stored only; no regen rule yet

    def __post_init__(self):
        self.hp = max(0, min(self.hp, self.max_hp))
        self.stealth = max(0, self.stealth)

    def __setattr__(self, name, value):
        if name == "side" and "side" in self.__dict__:
            raise AttributeError(f"Piece {self.id} cannot change side")
        super().__setattr__(name, value)

    def is_alive(self) -> bool:
        return self.hp > 0

    def is_visible_to(self, viewer: Side) -> bool:
        """Own pieces are always visible; enemies only once stealth hits 0."""
        if self.side == viewer:
            return True
        return self.stealth <= 0

    def take_hit(self, damage: int = 1) -> None:
        """Apply damage and the matching stealth loss."""
        self.hp = max(0, self.hp - damage)
        self.reduce_stealth(1)

    def reduce_stealth(self, amount: int = 1) -> None:
        self.stealth = max(0, self.stealth - amount)


@dataclass(frozen=True)
class Trap:
    """An unowned one-shot marker on a cell."""
    position: Position

    def to_dict(self) -> dict[str, int]:
        return self.position.to_dict()


@dataclass
class Board:
    """
    Authoritative state for one match.

    Created once with the starting roster, mutated only by the turn
    resolver, frozen once `game_over` is set.
    """
    pieces: dict[str, Piece] = field(default_factory=dict)
    traps: list[Trap] = field(default_factory=list)
    game_over: bool = False

    def get_piece(self, piece_id: str) -> Piece | None:
        return self.pieces.get(piece_id)

    def living_pieces(self, side: Side | None = None) -> list[Piece]:
        return [
            p for p in self.pieces.values()
            if p.is_alive() and (side is None or p.side == side)
        ]

    def piece_at(self, position: Position) -> Piece | None:
        """The living piece on a cell, if any."""
        for piece in self.pieces.values():
            if piece.is_alive() and piece.position == position:
                return piece
        return None

    def trap_at(self, position: Position) -> Trap | None:
        for trap in self.traps:
            if trap.position == position:
                return trap
        return None

    def clone(self) -> Board:
        """Deep copy the board."""
        return deepcopy(self)


# (id, hp, speed) in slot order; the column is the slot index
STARTING_ROSTER: dict[Side, tuple[tuple[str, int, int], ...]] = {
    Side.DEFENDER: (
        ("guest_0", 3, 3),
        ("guest_1", 3, 2),
        ("guest_2", 3, 1),
    ),
    Side.ATTACKER: (
        ("host_0", 3, 4),
        ("host_1", 3, 3),
        ("host_2", 3, 2),
    ),
}


def _free_cell(preferred: Position, side: Side, taken: set[Position]) -> Position | None:
    """Nearest free cell on the home row, then anywhere on the board."""
    home = sorted(
        (Position(col, side.home_row) for col in range(BOARD_WIDTH)),
        key=lambda p: (abs(p.col - preferred.col), p.col),
    )
    for cell in home:
        if cell not in taken:
            return cell
    for row in range(BOARD_HEIGHT):
        for col in range(BOARD_WIDTH):
            cell = Position(col, row)
            if cell not in taken:
                return cell
    return None


def place_pieces(board: Board, pieces: list[Piece]) -> Board:
    """
    Add pieces to a board, relocating any that collide with a living piece.

    Conflicts only arise from bad input; they are logged and resolved by
    moving the newcomer to the nearest free cell.
    """
    taken = {p.position for p in board.living_pieces()}
    for piece in pieces:
        if piece.is_alive() and piece.position in taken:
            cell = _free_cell(piece.position, piece.side, taken)
            if cell is None:
                raise ValueError(f"No free cell for piece {piece.id}")
            logger.warning(
                "Piece %s relocated from %s to %s: cell occupied",
                piece.id, piece.position.key, cell.key,
            )
            piece.position = cell
        if piece.is_alive():
            taken.add(piece.position)
        board.pieces[piece.id] = piece
    return board


def create_initial_board() -> Board:
    """The starting roster: three pieces per side on their home rows."""
    pieces = []
    for side in (Side.DEFENDER, Side.ATTACKER):
        for slot, (piece_id, hp, speed) in enumerate(STARTING_ROSTER[side]):
            pieces.append(
                Piece(
                    id=piece_id,
                    side=side,
                    position=Position(slot, side.home_row),
                    hp=hp,
                    max_hp=hp,
                    speed=speed,
                    stealth=INITIAL_STEALTH,
                )
            )
    board = place_pieces(Board(), pieces)
    logger.debug(
        "Initialized pieces: %s",
        ", ".join(f"{p.id}@{p.position.key}" for p in board.pieces.values()),
    )
    return board
