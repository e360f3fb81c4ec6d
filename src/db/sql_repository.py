"""Implementation of (Game)Repository using SQLAlchemy"""

from datetime import timezone
from typing import Iterator
from uuid import UUID

from sqlalchemy import Select, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError
from src.core.models import GameSession, SessionFilter
from src.core.shared_types import Status
from src.db.schema import DBGame


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get(self, game_id: UUID) -> GameSession | None:
        """Get game by ID, if record exists."""
        try:
            game_db = self.db.get(DBGame, game_id)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not read game {game_id}") from e
        if game_db:
            return self._to_model(game_db)
        return None

    def set(self, session: GameSession) -> None:
        """Store the full record under session.id (insert or overwrite)."""
        try:
            self.db.merge(self._to_db(session))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Could not store game {session.id}") from e

    def compare_and_set(self, session: GameSession, expected_token: str) -> bool:
        """Conditional UPDATE keyed on the previously read token. Exactly one concurrent writer can win."""
        statement = (
            update(DBGame)
            .where(DBGame.id == session.id, DBGame.turn_token == expected_token)
            .values(
                board_state=session.board_state,
                status=session.status.value,
                last_update=session.last_update,
                turn_token=session.turn_token,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Could not update game {session.id}") from e
        # Loaded instances may still hold the values from before the UPDATE
        self.db.expire_all()
        return result.rowcount == 1

    def query(self, criteria: SessionFilter) -> "SessionQuery":
        """Lazy sequence of all records matching the criteria."""
        return SessionQuery(self, criteria)

    def delete(self, game_id: UUID) -> bool:
        """Remove a game's record. Deleting an unknown ID is a no-op."""
        try:
            result = self.db.execute(delete(DBGame).where(DBGame.id == game_id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Could not delete game {game_id}") from e
        self.db.expire_all()
        return result.rowcount > 0

    def _select(self, criteria: SessionFilter) -> Select[tuple[DBGame]]:
        """Translate the filter into WHERE clauses."""
        query = select(DBGame).order_by(DBGame.last_update)
        if criteria.status is not None:
            query = query.where(DBGame.status == criteria.status.value)
        if criteria.updated_before is not None:
            query = query.where(DBGame.last_update <= criteria.updated_before)
        return query

    def _to_model(self, game_db: DBGame) -> GameSession:
        """Convert SQLAlchemy model to data transfer model."""
        last_update = game_db.last_update
        # SQLite does not keep the timezone; everything is stored as UTC
        if last_update.tzinfo is None:
            last_update = last_update.replace(tzinfo=timezone.utc)
        return GameSession(
            id=game_db.id,
            board_state=game_db.board_state,
            status=Status(game_db.status),
            last_update=last_update,
            white_player=game_db.white_player,
            black_player=game_db.black_player,
            turn_token=game_db.turn_token,
        )

    def _to_db(self, session: GameSession) -> DBGame:
        return DBGame(
            id=session.id,
            board_state=session.board_state,
            status=session.status.value,
            last_update=session.last_update,
            white_player=session.white_player,
            black_player=session.black_player,
            turn_token=session.turn_token,
        )


class SessionQuery:
    """Restartable result of SQLGameRepository.query: each iteration executes the SELECT again."""

    def __init__(self, repository: SQLGameRepository, criteria: SessionFilter) -> None:
        self._repo = repository
        self._criteria = criteria

    def __iter__(self) -> Iterator[GameSession]:
        try:
            # Materialize the rows first so callers can delete while iterating
            rows = self._repo.db.scalars(self._repo._select(self._criteria)).all()
        except SQLAlchemyError as e:
            raise RepositoryError("Could not query games") from e
        for game_db in rows:
            yield self._repo._to_model(game_db)
