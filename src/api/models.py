"""Requests and Response models"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.models import GameSession
from src.core.shared_types import Status
from src.rules.engine import PROMOTION_PIECES


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    white_player: str = Field(alias="w")
    black_player: str = Field(alias="b")

    @field_validator("white_player", "black_player")
    @classmethod
    def validate_player(cls, value: str) -> str:
        player = value.strip()
        if not player:
            raise InvalidRequestError("Both players must be named (w and b).")
        return player


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        def _is_algebraic_notation(value: str) -> bool:
            if len(value) != 2:
                return False

            first_character = value[0]
            second_character = value[1]
            if not (first_character.isalpha() and second_character.isnumeric()):
                return False
            return True

        if not _is_algebraic_notation(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name."
            )
        return value.lower()

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if value.lower() not in PROMOTION_PIECES:
            raise InvalidRequestError(
                f"Cannot promote to {value!r}. Pick one from {','.join(sorted(PROMOTION_PIECES))}"
            )
        return value.lower()


# --- RESPONSE MODELS ---
class GameCreatedResponse(BaseModel):
    id: UUID
    rendering: str


class GameStateResponse(BaseModel):
    """Never carries the turn token: that one only travels through notifications."""

    id: UUID
    board_state: str
    status: Status
    legal_moves: list[str]
    rendering: str


class GameSummaryResponse(BaseModel):
    id: UUID
    status: Status
    white_player: str
    black_player: str
    last_update: datetime

    @classmethod
    def from_session(cls, session: GameSession) -> "GameSummaryResponse":
        return cls(
            id=session.id,
            status=session.status,
            white_player=session.white_player,
            black_player=session.black_player,
            last_update=session.last_update,
        )


class MoveResponse(BaseModel):
    message: str
    rendering: str
    finished: bool
