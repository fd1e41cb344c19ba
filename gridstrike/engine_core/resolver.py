"""
Turn Resolver - Applies one action per side to the board.

The resolver is the single point of board mutation.
Given the same board and the same action pair it produces the same final
board and the same command sequence, so any client can replay a turn.

Resolution:
1. Order the two actions by acting-piece speed (fastest first)
2. Apply them against a running occupancy map, so the slower action sees
   what the faster one did
3. Trigger traps as soon as a piece steps on one
4. Decay stealth of pieces standing in front of enemies
5. Detect a winner
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import logging

from ..errors import InvalidArgumentError, MatchFinishedError
from .action import Action, ActionKind
from .animation import (
    AnimationCommand,
    BlockedMoveCommand,
    MoveCommand,
    SkillCommand,
    TrapCommand,
    TrapTriggeredCommand,
)
from .state import Board, Piece, Position, Side, Trap

logger = logging.getLogger(__name__)

DAMAGE_PER_HIT = 1
STEALTH_LOSS_PER_FACING_ENEMY = 1


class MatchOutcome(Enum):
    """Possible results after a turn."""
    IN_PROGRESS = "in_progress"
    ATTACKER_WINS = "attacker_wins"
    DEFENDER_WINS = "defender_wins"
    DRAW = "draw"


@dataclass
class ResolutionResult:
    """
    Result of resolving one turn.

    Contains:
    - The ordered animation script
    - The resolved board (a new object; the input board is untouched)
    - The winner, if the turn ended the match
    """
    animation_commands: list[AnimationCommand]
    final_board: Board
    winner: Side | None = None
    outcome: MatchOutcome = MatchOutcome.IN_PROGRESS
    order: list[str] = field(default_factory=list)  # piece ids, application order

    @property
    def game_over(self) -> bool:
        return self.final_board.game_over

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Per-piece position, hp and stealth after the turn."""
        return {
            piece.id: {
                "col": piece.position.col,
                "row": piece.position.row,
                "hp": piece.hp,
                "stealth": piece.stealth,
            }
            for piece in self.final_board.pieces.values()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "animationCommands": [c.to_dict() for c in self.animation_commands],
            "finalState": self.snapshot(),
            "gameOver": self.game_over,
            "winner": self.winner.value if self.winner else None,
            "outcome": self.outcome.value,
        }


# Occupancy during a turn: cell -> id of the piece last seen there
Occupancy = dict[Position, str]


class TurnResolver:
    """
    Resolves a simultaneous action pair.

    Stateless - all state is in the Board passed to resolve().
    """

    def __init__(self):
        self._handlers: dict[ActionKind, Callable[..., None]] = {
            ActionKind.MOVE: self._apply_move,
            ActionKind.ATTACK: self._apply_attack,
            ActionKind.PLACE_TRAP: self._apply_place_trap,
        }

    def resolve(
        self,
        board: Board,
        attacker_action: Action | None,
        defender_action: Action | None,
    ) -> ResolutionResult:
        """
        Resolve one turn.

        Raises InvalidArgumentError if either action is missing, and
        MatchFinishedError if the board is already frozen.
        """
        if attacker_action is None or defender_action is None:
            missing = [
                side.value for side, action in (
                    (Side.ATTACKER, attacker_action),
                    (Side.DEFENDER, defender_action),
                ) if action is None
            ]
            raise InvalidArgumentError(
                "Both sides must submit an action before resolution",
                context={"missing": missing},
            )
        if board.game_over:
            raise MatchFinishedError("Game is already over")

        board = board.clone()
        ordered = self.order_actions(
            board,
            [(Side.ATTACKER, attacker_action), (Side.DEFENDER, defender_action)],
        )

        occupancy: Occupancy = {p.position: p.id for p in board.living_pieces()}
        commands: list[AnimationCommand] = []

        for side, action in ordered:
            piece = board.get_piece(action.piece_id)
            if piece is None or not piece.is_alive():
                logger.debug("Skipping %s for %s: piece missing or dead", action.kind.value, action.piece_id)
                continue
            if piece.side != side:
                logger.warning(
                    "Skipping %s for %s: piece belongs to %s, not %s",
                    action.kind.value, piece.id, piece.side.value, side.value,
                )
                continue
            self._handlers[action.kind](board, piece, action, occupancy, commands)

        self._apply_proximity_decay(board)
        winner, outcome = self._detect_winner(board)

        return ResolutionResult(
            animation_commands=commands,
            final_board=board,
            winner=winner,
            outcome=outcome,
            order=[action.piece_id for _, action in ordered],
        )

    def order_actions(
        self,
        board: Board,
        actions: list[tuple[Side, Action]],
    ) -> list[tuple[Side, Action]]:
        """Fastest piece first; ties go to the Attacker, then by piece id."""
        def sort_key(entry: tuple[Side, Action]):
            side, action = entry
            piece = board.get_piece(action.piece_id)
            speed = piece.speed if piece else 0
            return (-speed, 0 if side is Side.ATTACKER else 1, action.piece_id)

        return sorted(actions, key=sort_key)

    # =========================================================================
    # Action handlers
    # =========================================================================

    def _apply_move(
        self,
        board: Board,
        piece: Piece,
        action: Action,
        occupancy: Occupancy,
        commands: list[AnimationCommand],
    ) -> None:
        origin = piece.position
        destination = action.destination

        # The mover vacates its cell before the destination is checked
        occupancy.pop(origin, None)

        if not destination.in_bounds() or self._is_occupied(board, occupancy, destination):
            logger.debug(
                "Move blocked for %s: %s occupied by %s",
                piece.id, destination.key, occupancy.get(destination),
            )
            occupancy[origin] = piece.id
            commands.append(
                BlockedMoveCommand(
                    card_id=piece.id,
                    attempted_destination=destination,
                    actual_destination=origin,
                )
            )
            return

        piece.position = destination
        occupancy[destination] = piece.id
        commands.append(MoveCommand(card_id=piece.id, destination=destination))
        self._check_trap(board, piece, commands)

    def _apply_attack(
        self,
        board: Board,
        piece: Piece,
        action: Action,
        occupancy: Occupancy,
        commands: list[AnimationCommand],
    ) -> None:
        target = next(
            (
                other for other in board.pieces.values()
                if other.side != piece.side
                and other.is_alive()
                and other.position == action.destination
            ),
            None,
        )
        if target is None:
            return

        target.take_hit(DAMAGE_PER_HIT)
        commands.append(SkillCommand(source_card_id=piece.id, target_card_id=target.id))

    def _apply_place_trap(
        self,
        board: Board,
        piece: Piece,
        action: Action,
        occupancy: Occupancy,
        commands: list[AnimationCommand],
    ) -> None:
        cell = action.destination
        if not cell.in_bounds():
            reason = "out of bounds"
        elif board.trap_at(cell) is not None:
            reason = "trap already there"
        elif self._is_occupied(board, occupancy, cell):
            reason = "cell occupied"
        else:
            reason = None

        if reason:
            logger.warning("Trap from %s at %s fizzled: %s", piece.id, cell.key, reason)
            return

        board.traps.append(Trap(cell))
        commands.append(TrapCommand(card_id=piece.id, destination=cell))

    # =========================================================================
    # Effects
    # =========================================================================

    def _check_trap(self, board: Board, piece: Piece, commands: list[AnimationCommand]) -> None:
        """Spring a trap under a piece that just arrived."""
        trap = board.trap_at(piece.position)
        if trap is None:
            return

        piece.take_hit(DAMAGE_PER_HIT)
        commands.append(TrapTriggeredCommand(card_id=piece.id, position=piece.position))
        board.traps.remove(trap)

    def _apply_proximity_decay(self, board: Board) -> None:
        """Each enemy facing a piece costs it one stealth, dead or alive."""
        pieces = list(board.pieces.values())
        for piece in pieces:
            for enemy in pieces:
                if enemy.side == piece.side:
                    continue
                if piece.position == enemy.position.ahead(enemy.side):
                    piece.reduce_stealth(STEALTH_LOSS_PER_FACING_ENEMY)

    def _detect_winner(self, board: Board) -> tuple[Side | None, MatchOutcome]:
        attackers = board.living_pieces(Side.ATTACKER)
        defenders = board.living_pieces(Side.DEFENDER)
        if attackers and defenders:
            return None, MatchOutcome.IN_PROGRESS

        board.game_over = True
        if not attackers and not defenders:
            return None, MatchOutcome.DRAW
        if attackers:
            return Side.ATTACKER, MatchOutcome.ATTACKER_WINS
        return Side.DEFENDER, MatchOutcome.DEFENDER_WINS

    @staticmethod
    def _is_occupied(board: Board, occupancy: Occupancy, cell: Position) -> bool:
        """True if a still-living piece holds the cell this turn."""
        occupant_id = occupancy.get(cell)
        if occupant_id is None:
            return False
        occupant = board.get_piece(occupant_id)
        return occupant is not None and occupant.is_alive()


def resolve_turn(
    board: Board,
    attacker_action: Action | None,
    defender_action: Action | None,
) -> ResolutionResult:
    """Convenience function to resolve a turn."""
    return TurnResolver().resolve(board, attacker_action, defender_action)
