"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to match calls
2. Resolves the caller's side from their user id
3. Formats responses with the caller's filtered view only

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.).
Failures are raised as GridStrikeError; the transport maps them to codes.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .schemas import (
    # Requests
    CreateMatchRequest,
    SubmitActionRequest,
    # Responses
    AnimationCompleteResponse,
    MatchResponse,
    MatchStateResponse,
    SubmitActionResponse,
    # Shared
    BoardInfo,
    LastTurnInfo,
    # Enums
    MatchStatus,
    SideName,
)
from ..engine_core.action import Action, ActionKind
from ..engine_core.state import Position, Side
from ..engine_core.visibility import BoardView, filter_board
from ..session import FilteredState, Match, MatchManager


@dataclass
class APIService:
    """
    Main API service for game clients.

    Usage:
        service = APIService()

        match = service.create_match(CreateMatchRequest(
            host_user_id="alice", guest_user_id="bob",
        ))
        service.submit_action(match.match_id, "alice", request)
        state = service.get_state(match.match_id, "bob")
    """
    match_manager: MatchManager = field(default_factory=MatchManager)

    def create_match(self, request: CreateMatchRequest) -> MatchResponse:
        """Create a match for two users already paired by matchmaking."""
        match = self.match_manager.create_match(
            host_user_id=request.host_user_id,
            guest_user_id=request.guest_user_id,
            match_id=request.match_id,
        )
        return self._match_to_response(match)

    def get_match(self, match_id: str) -> MatchResponse:
        return self._match_to_response(self.match_manager.get_match(match_id))

    def list_matches(self) -> list[str]:
        """List active match ids."""
        return self.match_manager.list_active_matches()

    def end_match(self, match_id: str, reason: str = "user_ended") -> bool:
        return self.match_manager.end_match(match_id, reason)

    def get_state(self, match_id: str, user_id: str | None) -> MatchStateResponse:
        """The match as the caller is allowed to see it."""
        match = self.match_manager.get_match(match_id)
        return self._filtered_to_response(match_id, match.filtered_state(user_id))

    def submit_action(
        self,
        match_id: str,
        user_id: str | None,
        request: SubmitActionRequest,
    ) -> SubmitActionResponse:
        """
        Submit the caller's action for the open turn.

        If this completes the turn, the response carries the animation
        script and the caller's filtered board.
        """
        match = self.match_manager.get_match(match_id)
        action = Action(
            piece_id=request.piece_id,
            kind=ActionKind(request.kind.value),
            destination=Position(request.destination.col, request.destination.row),
        )
        result = match.submit_action(user_id, action, expected_turn=request.turn)

        if not result.turn_completed:
            return SubmitActionResponse(
                match_id=match_id,
                turn_completed=False,
                waiting_for_opponent=True,
                turn_counter=result.turn,
            )

        resolution = result.resolution
        return SubmitActionResponse(
            match_id=match_id,
            turn_completed=True,
            waiting_for_opponent=False,
            turn_counter=result.turn,
            animation_commands=[c.to_dict() for c in resolution.animation_commands],
            final_state=self._visible_snapshot(resolution.final_board, result.side),
            state=self._board_info(filter_board(resolution.final_board, result.side)),
            game_over=resolution.game_over,
            winner=self._side_name(resolution.winner),
        )

    def notify_animation_complete(
        self,
        match_id: str,
        user_id: str | None,
    ) -> AnimationCompleteResponse:
        """Confirm the caller finished replaying the last turn."""
        match = self.match_manager.get_match(match_id)
        ready = match.notify_animation_complete(user_id)
        return AnimationCompleteResponse(
            match_id=match_id,
            next_turn_ready=ready,
            waiting_for_opponent=not ready,
        )

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _match_to_response(self, match: Match) -> MatchResponse:
        return MatchResponse(
            match_id=match.match_id,
            status=MatchStatus(match.status.value),
            host_user_id=match.host_user_id,
            guest_user_id=match.guest_user_id,
            turn_counter=match.turn_counter,
            finished=match.finished,
            winner=self._side_name(match.winner),
            outcome=match.outcome.value,
            created_at=match.created_at,
        )

    def _filtered_to_response(self, match_id: str, view: FilteredState) -> MatchStateResponse:
        last_action = None
        if view.last_turn is not None:
            own = view.last_turn.actions.get(view.viewer)
            last_action = LastTurnInfo(
                turn=view.last_turn.turn,
                commands=view.last_turn.commands,
                own_action=own.to_dict() if own else None,
            )

        return MatchStateResponse(
            match_id=match_id,
            player_role=view.viewer.role,
            side=SideName(view.viewer.value),
            status=MatchStatus(view.status.value),
            state=self._board_info(view.board),
            turn_counter=view.turn_counter,
            turn_ready=view.turn_ready,
            submitted={side.value: done for side, done in view.submitted.items()},
            finished=view.finished,
            winner=self._side_name(view.winner),
            outcome=view.outcome.value,
            last_action=last_action,
        )

    def _board_info(self, board_view: BoardView) -> BoardInfo:
        return BoardInfo.model_validate(board_view.to_dict())

    def _visible_snapshot(self, board, viewer: Side) -> dict[str, dict[str, int]]:
        """Snapshot with concealed enemy stats zeroed, like the filtered board."""
        view = filter_board(board, viewer)
        return {
            piece_id: {
                "col": piece.position.col,
                "row": piece.position.row,
                "hp": piece.hp,
                "stealth": piece.stealth,
            }
            for piece_id, piece in view.pieces.items()
        }

    @staticmethod
    def _side_name(side: Side | None) -> SideName | None:
        return SideName(side.value) if side else None
