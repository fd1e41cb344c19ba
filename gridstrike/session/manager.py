"""
Match Manager - Creates and tracks live matches.

LIFECYCLE:
1. Matchmaking (external) pairs two users and asks for a match
2. The match is created with the starting roster
3. Players submit actions and confirm animations through the Match
4. The match finishes when a side has no living pieces
5. Idle matches are cleaned up

PERSISTENCE:
- Matches live in memory
- A document store (external) can snapshot them with Match.to_document()
  and bring them back with restore_match()
"""

from __future__ import annotations
from typing import Any
import logging
import threading
import time
import uuid

from ..engine_core.state import create_initial_board
from ..errors import InvalidArgumentError, NotFoundError
from .match import Match

logger = logging.getLogger(__name__)


class MatchManager:
    """
    Manages matches.

    Responsibilities:
    - Create matches for a pair of users
    - Look matches up by id
    - Clean up finished and abandoned matches
    """

    def __init__(self):
        self._matches: dict[str, Match] = {}
        self._lock = threading.Lock()

    def create_match(
        self,
        host_user_id: str,
        guest_user_id: str,
        match_id: str | None = None,
    ) -> Match:
        """
        Create a new match.

        Args:
            host_user_id: User playing the Attacker (player1)
            guest_user_id: User playing the Defender (player2)
            match_id: Optional id; a uuid is generated if omitted

        Returns:
            New Match with the starting roster on the board
        """
        if not host_user_id or not guest_user_id:
            raise InvalidArgumentError("Both players are required")
        if host_user_id == guest_user_id:
            raise InvalidArgumentError("A user cannot play against themselves")

        match = Match(
            match_id=match_id or str(uuid.uuid4()),
            host_user_id=host_user_id,
            guest_user_id=guest_user_id,
            board=create_initial_board(),
        )
        self._register(match)
        logger.info("Match %s created: %s vs %s", match.match_id, host_user_id, guest_user_id)
        return match

    def restore_match(self, match_id: str, document: dict[str, Any]) -> Match:
        """Load a match from a stored document, replacing any live copy."""
        match = Match.from_document(match_id, document)
        with self._lock:
            self._matches[match_id] = match
        logger.info("Match %s restored at turn %d", match_id, match.turn_counter)
        return match

    def _register(self, match: Match) -> None:
        with self._lock:
            if match.match_id in self._matches:
                raise InvalidArgumentError(f"Match {match.match_id} already exists")
            self._matches[match.match_id] = match

    def get_match(self, match_id: str) -> Match:
        """Get a match by id. Raises NotFoundError."""
        with self._lock:
            match = self._matches.get(match_id)
        if match is None:
            raise NotFoundError("Match not found", context={"match_id": match_id})
        return match

    def end_match(self, match_id: str, reason: str = "completed") -> bool:
        """
        Remove a match from memory.

        Returns False if it was not being tracked.
        """
        with self._lock:
            match = self._matches.pop(match_id, None)
        if match is None:
            return False
        with match._lock:
            match.pending_actions.clear()
        logger.info("Match %s ended (%s)", match_id, reason)
        return True

    def list_active_matches(self) -> list[str]:
        """List ids of matches still in play."""
        with self._lock:
            return [mid for mid, match in self._matches.items() if match.is_active()]

    def cleanup_stale_matches(self, max_age_seconds: int = 3600) -> list[str]:
        """
        Remove matches idle longer than max_age, finished or not.

        Called periodically to free memory. Returns the removed ids.
        """
        current_time = time.time()
        with self._lock:
            to_remove = [
                mid for mid, match in self._matches.items()
                if current_time - match.updated_at > max_age_seconds
            ]

        for match_id in to_remove:
            self.end_match(match_id, reason="stale")
        return to_remove
