"""
Session Module - Live matches and their turn handshake.

A match represents one game between two users:
- Created when matchmaking pairs two players
- Holds the authoritative board
- Collects one action per side and resolves each turn exactly once
- Locks input until both clients have replayed the last turn

Matches are held in memory. A document store can snapshot and restore
them through Match.to_document() / MatchManager.restore_match().
"""

from .manager import MatchManager
from .match import FilteredState, LastTurn, Match, MatchStatus, SubmitResult

__all__ = [
    "MatchManager",
    "Match",
    "MatchStatus",
    "LastTurn",
    "SubmitResult",
    "FilteredState",
]
