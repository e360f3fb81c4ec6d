"""Orchestration of a game session: persistence, rules engine and notifications, guarded by the turn token."""

import secrets
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from src.core.exceptions import NotFoundError, RepositoryError, UnauthorizedError
from src.core.models import (
    GameSession,
    MoveOutcome,
    NotificationEvent,
    Player,
    SessionFilter,
    SessionSummary,
)
from src.core.shared_types import Status
from src.db.repository import GameRepository
from src.db.schema import utc_now
from src.notifications.sink import NotificationSink
from src.rules.engine import RulesEngine, is_terminal

logger = structlog.get_logger(__name__)

MOVE_SUBMITTED = "move submitted"
GAME_OVER = "game over"


def new_turn_token() -> str:
    """Unguessable bearer token, unrelated to any previous token or to the board."""
    return secrets.token_urlsafe(32)


class GameSessionService:
    """Creates sessions, hands out and rotates turn tokens, and applies moves."""

    def __init__(
        self,
        repository: GameRepository,
        rules: RulesEngine,
        notifier: NotificationSink,
        clock: Callable[[], datetime] = utc_now,
        token_factory: Callable[[], str] = new_turn_token,
    ) -> None:
        self.repo = repository
        self.rules = rules
        self.notifier = notifier
        self._clock = clock
        self._new_token = token_factory

    def create_game(self, white: Player, black: Player) -> SessionSummary:
        """Start a game in the canonical position. White receives the first turn token."""

        board_state = self.rules.initial()
        session = GameSession(
            id=uuid4(),
            board_state=board_state,
            status=Status.IN_PROGRESS,
            last_update=self._clock(),
            white_player=white,
            black_player=black,
            turn_token=self._new_token(),
        )
        self.repo.set(session)
        logger.info("game_created", game_id=str(session.id))

        self._notify(NotificationEvent(player=white, game=session.id, token=session.turn_token))

        return SessionSummary(id=session.id, rendering=self.rules.render(self.rules.load(board_state)))

    def get_game(self, game_id: UUID) -> GameSession:
        return self._fetch_game(game_id)

    def list_games(self) -> list[GameSession]:
        """All stored sessions, least recently updated first."""
        return list(self.repo.query(SessionFilter()))

    def legal_moves(self, session: GameSession) -> list[str]:
        """UCI moves available to the side to move in an already fetched session. Nothing can be played in a finished game."""
        if session.finished:
            return []
        return self.rules.legal_moves(self.rules.load(session.board_state))

    def render(self, session: GameSession) -> str:
        return self.rules.render(self.rules.load(session.board_state))

    def apply_move(
        self,
        game_id: UUID,
        presented_token: Optional[str],
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> MoveOutcome:
        """
        Make a move attempt on behalf of whoever holds the current turn token.
        ----
        1. the token must match the stored one (checked before the move is even looked at)
        2. the rules engine decides legality and whether the game is over
        3. the new state and a fresh token are written only if nobody rotated the token in the meantime
        4. the next player (or both players, if the game ended) gets notified
        """
        session = self._fetch_game(game_id)

        # A finished game has no next mover, so no token can authorize anything
        if (
            not presented_token
            or session.finished
            or not secrets.compare_digest(presented_token.encode(), session.turn_token.encode())
        ):
            logger.info("move_unauthorized", game_id=str(game_id))
            raise UnauthorizedError(f"Not authorized to move in game {game_id}.")

        # Ask the rules engine (raises IllegalMoveError, nothing stored yet)
        board = self.rules.load(session.board_state)
        mover = self.rules.side_to_move(board)
        new_state = self.rules.apply_move(board, from_square, to_square, promotion)
        finished = is_terminal(self.rules, board)

        # Full overwrite of the mutable fields, conditional on the token we validated
        updated = GameSession(
            id=session.id,
            board_state=new_state,
            status=Status.FINISHED if finished else Status.IN_PROGRESS,
            last_update=max(self._clock(), session.last_update),
            white_player=session.white_player,
            black_player=session.black_player,
            turn_token=self._new_token(),
        )
        if not self.repo.compare_and_set(updated, expected_token=session.turn_token):
            logger.info("move_lost_race", game_id=str(game_id))
            raise UnauthorizedError(
                f"Turn token for game {game_id} was superseded by another move."
            )
        logger.info("move_applied", game_id=str(game_id), mover=mover.value, finished=finished)

        if finished:
            for player in (updated.white_player, updated.black_player):
                self._notify(NotificationEvent(player=player, game=updated.id, finished=True))
        else:
            next_player = updated.player(mover.opponent)
            self._notify(
                NotificationEvent(player=next_player, game=updated.id, token=updated.turn_token)
            )

        return MoveOutcome(
            message=GAME_OVER if finished else MOVE_SUBMITTED,
            rendering=self.rules.render(board),
            finished=finished,
        )

    # -- Internal helpers --
    def _fetch_game(self, game_id: UUID) -> GameSession:
        """Attempt to find the game in the repository and raise error if it fails."""
        try:
            session = self.repo.get(game_id)
        except RepositoryError:
            # Reported as a missing game to the caller. Logged so a backend outage stays visible.
            logger.warning("game_read_failed", game_id=str(game_id), exc_info=True)
            raise NotFoundError(f"Game with {game_id=} not found.")
        if session is None:
            raise NotFoundError(f"Game with {game_id=} not found.")
        return session

    def _notify(self, event: NotificationEvent) -> None:
        """Enqueue an event. A failure here never undoes the state change that was already stored."""
        try:
            self.notifier.publish(event)
        except Exception:
            logger.exception("notification_publish_failed", game_id=str(event.game))
