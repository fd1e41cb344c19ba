"""
Engine Core - Deterministic turn resolution for one match.

The engine:
1. Holds the authoritative Board (pieces, traps, game-over flag)
2. Decodes and encodes persisted board documents
3. Resolves one action per side into a new board and an animation script
4. Filters the board per viewer to enforce hidden information
"""

from .state import (
    BOARD_HEIGHT,
    BOARD_WIDTH,
    Board,
    Piece,
    Position,
    Side,
    Trap,
    create_initial_board,
)
from .action import Action, ActionKind
from .animation import (
    AnimationCommand,
    BlockedMoveCommand,
    MoveCommand,
    SkillCommand,
    TrapCommand,
    TrapTriggeredCommand,
)
from .codec import decode_board, encode_board
from .resolver import MatchOutcome, ResolutionResult, TurnResolver, resolve_turn
from .visibility import BoardView, PieceView, concealed_piece_ids, filter_board

__all__ = [
    "BOARD_HEIGHT",
    "BOARD_WIDTH",
    "Board",
    "Piece",
    "Position",
    "Side",
    "Trap",
    "create_initial_board",
    "Action",
    "ActionKind",
    "AnimationCommand",
    "BlockedMoveCommand",
    "MoveCommand",
    "SkillCommand",
    "TrapCommand",
    "TrapTriggeredCommand",
    "decode_board",
    "encode_board",
    "MatchOutcome",
    "ResolutionResult",
    "TurnResolver",
    "resolve_turn",
    "BoardView",
    "PieceView",
    "concealed_piece_ids",
    "filter_board",
]
