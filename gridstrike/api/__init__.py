"""
API Module - Game client interface.

Exposes the engine via REST API and WebSocket pushes.
A client:
1. Gets a match id from matchmaking
2. Reads its filtered state
3. Submits one action per turn
4. Replays the returned animation script
5. Confirms the replay so the next turn opens

Caller identity arrives in the X-User-Id header; authentication is upstream.
"""

from .schemas import (
    # Requests
    CreateMatchRequest,
    SubmitActionRequest,
    # Responses
    AnimationCompleteResponse,
    EndMatchResponse,
    ErrorResponse,
    MatchListResponse,
    MatchResponse,
    MatchStateResponse,
    SubmitActionResponse,
    # Shared
    BoardInfo,
    PieceInfo,
    PositionModel,
    TrapInfo,
)
from .service import APIService

__all__ = [
    # Requests
    "CreateMatchRequest",
    "SubmitActionRequest",
    # Responses
    "AnimationCompleteResponse",
    "EndMatchResponse",
    "ErrorResponse",
    "MatchListResponse",
    "MatchResponse",
    "MatchStateResponse",
    "SubmitActionResponse",
    # Shared
    "BoardInfo",
    "PieceInfo",
    "PositionModel",
    "TrapInfo",
    # Service
    "APIService",
]
