"""Protocol repository (implemented with SQLAlchemy in sql_repository.py, with a dictionary in the tests)"""

from typing import Iterable, Protocol
from uuid import UUID

from src.core.models import GameSession, SessionFilter


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def get(self, game_id: UUID) -> GameSession | None:
        """Get game by ID, if record exists."""
        ...

    def set(self, session: GameSession) -> None:
        """Store the full record under session.id (insert or overwrite)."""
        ...

    def compare_and_set(self, session: GameSession, expected_token: str) -> bool:
        """
        Overwrite the record only if its stored turn token still equals expected_token.

        Returns False (and writes nothing) when another writer rotated the token first, or the record is gone.
        """
        ...

    def query(self, criteria: SessionFilter) -> Iterable[GameSession]:
        """
        Lazy sequence of all records matching the criteria.

        Nothing is read before iteration starts, and every new iteration runs the query again.
        """
        ...

    def delete(self, game_id: UUID) -> bool:
        """Remove a game's record. Returns False if there was nothing to delete."""
        ...
