"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between game clients and the engine.
Board payloads keep the persisted document vocabulary (cards, col/row,
maxHp, atk, isHidden) so clients can render either source the same way.

Error Codes:
- unauthenticated: No caller identity was supplied
- not-found: Match or piece does not exist
- permission-denied: Caller is not a participant or does not own the piece
- already-submitted: Caller already submitted an action this turn
- invalid-argument: Missing or malformed fields
- failed-precondition: Match finished, or previous turn still animating
- internal: Unexpected engine failure
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field

from ..engine_core.state import BOARD_HEIGHT, BOARD_WIDTH


# =============================================================================
# Enums
# =============================================================================

class MatchStatus(str, Enum):
    """Match status values."""
    WAITING_FOR_ACTIONS = "waiting_for_actions"
    ANIMATING = "animating"
    FINISHED = "finished"


class ActionKindName(str, Enum):
    """Action kinds accepted from clients."""
    MOVE = "move"
    ATTACK = "attack"
    PLACE_TRAP = "placeTrap"


class SideName(str, Enum):
    HOST = "host"
    GUEST = "guest"


class ErrorCode(str, Enum):
    """Structured error codes."""
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    ALREADY_SUBMITTED = "already-submitted"
    INVALID_ARGUMENT = "invalid-argument"
    FAILED_PRECONDITION = "failed-precondition"
    INTERNAL = "internal"


# =============================================================================
# Shared Models
# =============================================================================

class PositionModel(BaseModel):
    """A grid cell."""
    col: int = Field(..., ge=0, lt=BOARD_WIDTH)
    row: int = Field(..., ge=0, lt=BOARD_HEIGHT)


class PieceInfo(BaseModel):
    """A piece as the viewer sees it. Concealed pieces carry zeroed stats."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner: SideName
    col: int
    row: int
    hp: int = 0
    max_hp: int = Field(0, alias="maxHp")
    atk: int = 0
    atk_range: int = Field(0, alias="atkRange")
    speed: int = 0
    stealth: int = 0
    stealth_regeneration: int = Field(0, alias="stealthRegeneration")
    is_hidden: bool = Field(False, alias="isHidden")


class TrapInfo(BaseModel):
    col: int
    row: int


class BoardInfo(BaseModel):
    """A viewer's redacted board."""
    model_config = ConfigDict(populate_by_name=True)

    cards: dict[str, PieceInfo] = Field(default_factory=dict)
    traps: list[TrapInfo] = Field(default_factory=list)
    game_over: bool = Field(False, alias="gameOver")


class LastTurnInfo(BaseModel):
    """The last resolved turn, for replay."""
    turn: int
    commands: list[dict[str, Any]] = Field(
        default_factory=list,
        description="move, blockedMove, skill, trap, trapTriggered commands in order",
    )
    own_action: Optional[dict[str, Any]] = Field(
        None, description="The viewer's own action for that turn"
    )


# =============================================================================
# Requests
# =============================================================================

class CreateMatchRequest(BaseModel):
    """Pair two users into a new match (called by matchmaking)."""
    host_user_id: str = Field(..., min_length=1, description="Plays the Attacker (player1)")
    guest_user_id: str = Field(..., min_length=1, description="Plays the Defender (player2)")
    match_id: Optional[str] = None


class SubmitActionRequest(BaseModel):
    """One side's action for the open turn."""
    piece_id: str = Field(..., min_length=1)
    kind: ActionKindName
    destination: PositionModel
    turn: Optional[int] = Field(
        None, ge=0, description="Turn counter the client saw; rejected if stale"
    )


# =============================================================================
# Responses
# =============================================================================

class MatchResponse(BaseModel):
    """Match summary."""
    match_id: str
    status: MatchStatus
    host_user_id: str
    guest_user_id: str
    turn_counter: int = 0
    finished: bool = False
    winner: Optional[SideName] = None
    outcome: str = "in_progress"
    created_at: float


class MatchStateResponse(BaseModel):
    """Per-viewer game state."""
    match_id: str
    player_role: str = Field(..., description="player1 or player2")
    side: SideName
    status: MatchStatus
    state: BoardInfo
    turn_counter: int
    turn_ready: bool
    submitted: dict[str, bool] = Field(
        default_factory=dict, description="Which sides have an action in for the open turn"
    )
    finished: bool = False
    winner: Optional[SideName] = None
    outcome: str = "in_progress"
    last_action: Optional[LastTurnInfo] = None
    api_version: str = "v1"


class SubmitActionResponse(BaseModel):
    """Result of an accepted action."""
    success: bool = True
    match_id: str
    turn_completed: bool
    waiting_for_opponent: bool
    turn_counter: int
    animation_commands: list[dict[str, Any]] = Field(default_factory=list)
    final_state: Optional[dict[str, dict[str, int]]] = Field(
        None, description="Per piece col/row/hp/stealth after the turn"
    )
    state: Optional[BoardInfo] = Field(None, description="Submitter's filtered board")
    game_over: bool = False
    winner: Optional[SideName] = None
    api_version: str = "v1"


class AnimationCompleteResponse(BaseModel):
    success: bool = True
    match_id: str
    next_turn_ready: bool
    waiting_for_opponent: bool


class MatchListResponse(BaseModel):
    """Response listing active matches."""
    matches: list[str]
    count: int


class EndMatchResponse(BaseModel):
    """Response after ending a match."""
    success: bool
    match_id: str


class ErrorResponse(BaseModel):
    """Error payload for every failed request."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
