"""
Match - One two-player match and its turn handshake.

TURN LIFECYCLE:
1. Both sides submit one action each, in any order
2. The second submission resolves the turn, exactly once
3. The resolved board replaces the old one in a single step
4. Input stays locked until both clients confirm their animation finished
5. Repeat until one side has no living pieces

CONCURRENCY:
- Every read-modify-write runs under the match lock
- "both present -> resolve -> commit -> clear" is one critical section,
  so racing submissions cannot resolve a turn twice
- Resolution order comes from piece speed, never from arrival order
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging
import threading
import time

from ..engine_core.action import Action
from ..engine_core.codec import decode_board, encode_board
from ..engine_core.resolver import MatchOutcome, ResolutionResult, TurnResolver
from ..engine_core.state import Board, Side
from ..engine_core.visibility import BoardView, filter_board
from ..errors import (
    AlreadySubmittedError,
    FailedPreconditionError,
    GridStrikeError,
    InternalError,
    InvalidArgumentError,
    MatchFinishedError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)


class MatchStatus(Enum):
    """Where a match is in its turn cycle."""
    WAITING_FOR_ACTIONS = "waiting_for_actions"
    ANIMATING = "animating"  # Turn resolved, waiting on both clients
    FINISHED = "finished"


@dataclass
class LastTurn:
    """The most recently resolved turn, kept for replay."""
    turn: int
    commands: list[dict[str, Any]]
    actions: dict[Side, Action]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"turn": self.turn, "commands": self.commands}
        for side, action in self.actions.items():
            data[side.role] = action.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LastTurn:
        actions = {
            side: Action.from_dict(data[side.role])
            for side in Side
            if data.get(side.role)
        }
        return cls(
            turn=int(data.get("turn", 0)),
            commands=list(data.get("commands") or []),
            actions=actions,
        )


@dataclass
class SubmitResult:
    """
    Outcome of an accepted submission.

    Either the opponent has not submitted yet, or this submission completed
    the turn and `resolution` holds the resolver's output.
    """
    side: Side
    turn: int
    turn_completed: bool = False
    resolution: ResolutionResult | None = None

    @property
    def waiting_for_opponent(self) -> bool:
        return not self.turn_completed

    @property
    def game_over(self) -> bool:
        return self.resolution is not None and self.resolution.game_over

    @property
    def winner(self) -> Side | None:
        return self.resolution.winner if self.resolution else None


@dataclass
class FilteredState:
    """Everything one participant may see about a match."""
    viewer: Side
    board: BoardView
    turn_counter: int
    status: MatchStatus
    finished: bool
    winner: Side | None
    outcome: MatchOutcome
    turn_ready: bool
    submitted: dict[Side, bool]
    last_turn: LastTurn | None = None


@dataclass
class Match:
    """
    A live match.

    Contains:
    - The two participants (host plays the Attacker, guest the Defender)
    - The authoritative board
    - The pending action per side for the open turn
    - The animation handshake that unlocks the next turn
    """
    match_id: str
    host_user_id: str
    guest_user_id: str
    board: Board
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    turn_counter: int = 0
    finished: bool = False
    winner: Side | None = None
    outcome: MatchOutcome = MatchOutcome.IN_PROGRESS

    pending_actions: dict[Side, Action] = field(default_factory=dict)
    last_turn: LastTurn | None = None
    animation_complete: dict[Side, bool] = field(
        default_factory=lambda: {side: False for side in Side}
    )
    turn_ready: bool = True

    resolver: TurnResolver = field(default_factory=TurnResolver, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def status(self) -> MatchStatus:
        if self.finished:
            return MatchStatus.FINISHED
        if not self.turn_ready:
            return MatchStatus.ANIMATING
        return MatchStatus.WAITING_FOR_ACTIONS

    def is_active(self) -> bool:
        return not self.finished

    def role_of(self, user_id: str | None) -> Side:
        """Which side a user plays. Rejects anonymous callers and outsiders."""
        if not user_id:
            raise UnauthenticatedError("User must be authenticated")
        if user_id == self.host_user_id:
            return Side.ATTACKER
        if user_id == self.guest_user_id:
            return Side.DEFENDER
        raise PermissionDeniedError(
            "User is not a player in this match",
            context={"match_id": self.match_id},
        )

    # =========================================================================
    # Turn input
    # =========================================================================

    def submit_action(
        self,
        user_id: str | None,
        action: Action,
        expected_turn: int | None = None,
    ) -> SubmitResult:
        """
        Record one side's action; resolve the turn once both are in.

        `expected_turn` lets a client pin the submission to the turn it saw,
        so a late retry cannot land in the following turn.
        """
        with self._lock:
            side = self.role_of(user_id)
            if self.finished:
                raise MatchFinishedError("Match is already finished")
            if not self.turn_ready:
                raise FailedPreconditionError(
                    "Previous turn is still animating",
                    context={"waiting_on": [s.value for s in self._animating_sides()]},
                )
            if expected_turn is not None and expected_turn != self.turn_counter:
                raise FailedPreconditionError(
                    "Action is for a different turn",
                    context={"expected_turn": expected_turn, "turn": self.turn_counter},
                )
            if side in self.pending_actions:
                raise AlreadySubmittedError("Action already submitted for this turn")

            self._validate_action(side, action)
            self.pending_actions[side] = action
            self.updated_at = time.time()
            logger.debug("Match %s: %s submitted %s", self.match_id, side.value, action.kind.value)

            if len(self.pending_actions) < len(Side):
                return SubmitResult(side=side, turn=self.turn_counter)

            resolution = self._resolve_pending(side)
            return SubmitResult(
                side=side,
                turn=self.turn_counter,
                turn_completed=True,
                resolution=resolution,
            )

    def _validate_action(self, side: Side, action: Action) -> None:
        piece = self.board.get_piece(action.piece_id)
        if piece is None:
            raise NotFoundError(
                f"Unknown piece: {action.piece_id}",
                context={"match_id": self.match_id},
            )
        if piece.side != side:
            raise PermissionDeniedError(f"Piece {piece.id} belongs to the opponent")
        if not action.destination.in_bounds():
            raise InvalidArgumentError(
                "Destination is outside the board",
                context=action.destination.to_dict(),
            )

    def _resolve_pending(self, submitting_side: Side) -> ResolutionResult:
        """Resolve and commit. Caller holds the lock."""
        actions = dict(self.pending_actions)
        try:
            resolution = self.resolver.resolve(
                self.board,
                actions[Side.ATTACKER],
                actions[Side.DEFENDER],
            )
        except GridStrikeError:
            self.pending_actions.pop(submitting_side, None)
            raise
        except Exception as e:
            self.pending_actions.pop(submitting_side, None)
            logger.exception("Match %s: resolution failed", self.match_id)
            raise InternalError(
                "Turn resolution failed",
                context={"match_id": self.match_id},
            ) from e

        self.board = resolution.final_board
        self.turn_counter += 1
        self.last_turn = LastTurn(
            turn=self.turn_counter,
            commands=[command.to_dict() for command in resolution.animation_commands],
            actions=actions,
        )
        self.pending_actions = {}
        self.animation_complete = {side: False for side in Side}
        self.turn_ready = False

        if resolution.game_over:
            self.finished = True
            self.winner = resolution.winner
            self.outcome = resolution.outcome

        logger.info(
            "Match %s turn %d resolved: order=%s commands=%d outcome=%s",
            self.match_id,
            self.turn_counter,
            ",".join(resolution.order),
            len(resolution.animation_commands),
            resolution.outcome.value,
        )
        return resolution

    # =========================================================================
    # Animation handshake
    # =========================================================================

    def notify_animation_complete(self, user_id: str | None) -> bool:
        """
        Mark one client's animation as finished.

        Returns True once both have confirmed and the next turn is open.
        Repeated confirmations are harmless.
        """
        with self._lock:
            side = self.role_of(user_id)
            if self.finished:
                raise MatchFinishedError("Match is already finished")
            if self.turn_ready:
                return True

            self.animation_complete[side] = True
            self.updated_at = time.time()

            if all(self.animation_complete.values()):
                self.animation_complete = {s: False for s in Side}
                self.turn_ready = True
                logger.debug("Match %s: both animations complete, turn %d open",
                             self.match_id, self.turn_counter + 1)
            return self.turn_ready

    def _animating_sides(self) -> list[Side]:
        return [side for side, done in self.animation_complete.items() if not done]

    # =========================================================================
    # Views
    # =========================================================================

    def filtered_state(self, user_id: str | None) -> FilteredState:
        """The match as one participant is allowed to see it."""
        with self._lock:
            side = self.role_of(user_id)
            last_turn = None
            if self.last_turn is not None:
                # Opponent's raw action stays private; the command script is shared
                last_turn = LastTurn(
                    turn=self.last_turn.turn,
                    commands=list(self.last_turn.commands),
                    actions={
                        s: a for s, a in self.last_turn.actions.items() if s == side
                    },
                )
            return FilteredState(
                viewer=side,
                board=filter_board(self.board, side),
                turn_counter=self.turn_counter,
                status=self.status,
                finished=self.finished,
                winner=self.winner,
                outcome=self.outcome,
                turn_ready=self.turn_ready,
                submitted={s: s in self.pending_actions for s in Side},
                last_turn=last_turn,
            )

    # =========================================================================
    # Persistence boundary
    # =========================================================================

    def to_document(self) -> dict[str, Any]:
        """Serialize for an external document store."""
        with self._lock:
            return {
                "player1": self.host_user_id,
                "player2": self.guest_user_id,
                "state": encode_board(self.board),
                "turnCounter": self.turn_counter,
                "finished": self.finished,
                "winner": self.winner.role if self.winner else None,
                "outcome": self.outcome.value,
                "currentTurnActions": {
                    side.role: action.to_dict()
                    for side, action in self.pending_actions.items()
                },
                "lastAction": self.last_turn.to_dict() if self.last_turn else None,
                "animationComplete": {
                    side.role: done for side, done in self.animation_complete.items()
                },
                "turnReady": self.turn_ready,
                "createdAt": self.created_at,
                "lastUpdated": self.updated_at,
            }

    @classmethod
    def from_document(cls, match_id: str, document: dict[str, Any]) -> Match:
        """Rebuild a match from a stored document."""
        if not isinstance(document, dict):
            raise InvalidArgumentError("Match document must be an object")
        host, guest = document.get("player1"), document.get("player2")
        if not isinstance(host, str) or not isinstance(guest, str):
            raise InvalidArgumentError("Match document is missing its players")

        board = decode_board(document.get("state") or {})

        winner = None
        if document.get("winner"):
            try:
                winner = Side.from_role(document["winner"])
            except ValueError as e:
                raise InvalidArgumentError(str(e)) from e

        finished = bool(document.get("finished", False)) or board.game_over
        if document.get("outcome"):
            try:
                outcome = MatchOutcome(document["outcome"])
            except ValueError as e:
                raise InvalidArgumentError(f"Unknown outcome: {document['outcome']!r}") from e
        elif winner is Side.ATTACKER:
            outcome = MatchOutcome.ATTACKER_WINS
        elif winner is Side.DEFENDER:
            outcome = MatchOutcome.DEFENDER_WINS
        elif finished:
            outcome = MatchOutcome.DRAW
        else:
            outcome = MatchOutcome.IN_PROGRESS

        pending = {}
        stored_actions = document.get("currentTurnActions") or {}
        for side in Side:
            if stored_actions.get(side.role):
                pending[side] = Action.from_dict(stored_actions[side.role])
        animation = document.get("animationComplete") or {}
        try:
            turn_counter = int(document.get("turnCounter") or 0)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Invalid turnCounter: {document['turnCounter']!r}") from e
        last_action = document.get("lastAction")
        now = time.time()

        return cls(
            match_id=match_id,
            host_user_id=host,
            guest_user_id=guest,
            board=board,
            created_at=document.get("createdAt", now),
            updated_at=document.get("lastUpdated", now),
            turn_counter=turn_counter,
            finished=finished,
            winner=winner,
            outcome=outcome,
            pending_actions=pending,
            last_turn=LastTurn.from_dict(last_action) if last_action else None,
            animation_complete={side: bool(animation.get(side.role)) for side in Side},
            turn_ready=bool(document.get("turnReady", True)),
        )
