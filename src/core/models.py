"""
Boundary layer data model(s).

These objects are used to communicate with the Service.
Both the API layer (higher) and the db/rules/notification layers (lower) send and receive the models defined here,
which decouples the SQL schema and the HTTP payloads from the information that actually crosses the boundaries.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from src.core.shared_types import Color, Status

# Type alias to make the models easier to read. Opaque (email-like) identifier, only passed on to notification delivery.
Player = str


@dataclass
class GameSession:
    """Aggregate root: everything persisted about a single chess game."""

    id: UUID
    board_state: str
    status: Status
    last_update: datetime
    white_player: Player
    black_player: Player
    turn_token: str

    @property
    def finished(self) -> bool:
        return self.status == Status.FINISHED

    def player(self, color: Color) -> Player:
        return self.white_player if color == Color.WHITE else self.black_player


@dataclass(frozen=True)
class NotificationEvent:
    """Fire-and-forget message: who must act next, or that the game ended."""

    player: Player
    game: UUID
    token: Optional[str] = None
    finished: bool = False


@dataclass(frozen=True)
class SessionFilter:
    """Predicate understood by the repository. Unset criteria match everything."""

    status: Optional[Status] = None
    updated_before: Optional[datetime] = None


@dataclass(frozen=True)
class SessionSummary:
    id: UUID
    rendering: str


@dataclass(frozen=True)
class MoveOutcome:
    message: str
    rendering: str
    finished: bool
