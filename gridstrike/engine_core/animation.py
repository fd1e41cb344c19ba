"""
Animation commands emitted by the turn resolver.

Commands describe what a client should replay, in order. They are derived
from the authoritative state change but carry no gameplay meaning of their
own; durations are presentation hints.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Union

from .state import Position


MOVE_DURATION = 500
BLOCKED_MOVE_DURATION = 300
BULLET_DURATION = 300
FLASH_DURATION = 100
TRAP_DURATION = 300


@dataclass(frozen=True)
class MoveCommand:
    card_id: str
    destination: Position
    duration: int = MOVE_DURATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "move",
            "cardId": self.card_id,
            "destination": self.destination.to_dict(),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class BlockedMoveCommand:
    """A move that bounced off an occupied cell; the piece stays put."""
    card_id: str
    attempted_destination: Position
    actual_destination: Position
    duration: int = BLOCKED_MOVE_DURATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "blockedMove",
            "cardId": self.card_id,
            "attemptedDestination": self.attempted_destination.to_dict(),
            "actualDestination": self.actual_destination.to_dict(),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class SkillCommand:
    """An attack landing on a target."""
    source_card_id: str
    target_card_id: str
    bullet_duration: int = BULLET_DURATION
    flash_duration: int = FLASH_DURATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "skill",
            "sourceCardId": self.source_card_id,
            "targetCardId": self.target_card_id,
            "bulletDuration": self.bullet_duration,
            "flashDuration": self.flash_duration,
        }


@dataclass(frozen=True)
class TrapCommand:
    """A trap being laid."""
    card_id: str
    destination: Position
    duration: int = TRAP_DURATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "trap",
            "cardId": self.card_id,
            "destination": self.destination.to_dict(),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class TrapTriggeredCommand:
    card_id: str
    position: Position

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "trapTriggered",
            "cardId": self.card_id,
            "position": self.position.to_dict(),
        }


AnimationCommand = Union[
    MoveCommand,
    BlockedMoveCommand,
    SkillCommand,
    TrapCommand,
    TrapTriggeredCommand,
]
