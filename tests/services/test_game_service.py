"""Unit tests for src/services/game_service.py"""

from dataclasses import replace
from datetime import timedelta
from uuid import UUID, uuid4

import chess
import pytest

from src.core.exceptions import IllegalMoveError, NotFoundError, UnauthorizedError
from src.core.models import GameSession, NotificationEvent, SessionSummary
from src.core.shared_types import Status
from src.rules.engine import ChessRulesEngine
from src.services.game_service import GAME_OVER, MOVE_SUBMITTED, GameSessionService
from tests.mocks import (
    BrokenRepository,
    FailingSink,
    FakeClock,
    MockRepository,
    RecordingSink,
)

WHITE = "whitey.mcwhite@example.com"
BLACK = "blackey.mcblack@example.com"

LADDER_MATE_FEN = "k7/6RR/8/8/8/8/K7/8 w - - 0 1"  # h7h8 mates
STALEMATE_FEN = "7k/8/8/6Q1/8/8/8/K7 w - - 0 1"  # g5g6 stalemates
BARE_KINGS_FEN = "k7/8/8/8/8/8/1r6/K7 w - - 0 1"  # a1b2 leaves king vs king
FIFTY_MOVES_FEN = "k7/8/8/8/8/8/8/KR6 w - - 99 80"  # any quiet move hits the 50 move rule


@pytest.fixture
def service(
    mock_repository: MockRepository,
    rules: ChessRulesEngine,
    sink: RecordingSink,
    clock: FakeClock,
) -> GameSessionService:
    return GameSessionService(mock_repository, rules, sink, clock=clock)


def _store_position(repository: MockRepository, fen: str, clock: FakeClock) -> GameSession:
    """Put a game with an arbitrary position in the repository (white to move, token 'T0')."""
    session = GameSession(
        id=uuid4(),
        board_state=fen,
        status=Status.IN_PROGRESS,
        last_update=clock(),
        white_player=WHITE,
        black_player=BLACK,
        turn_token="T0",
    )
    repository.set(session)
    return session


# --- SERVICE - CREATE GAME ----
def test_create_a_new_game(
    service: GameSessionService, mock_repository: MockRepository, sink: RecordingSink, clock: FakeClock
) -> None:
    """New game is persisted in the canonical start position and white is handed the first token."""
    summary = service.create_game(WHITE, BLACK)

    # Check response
    assert isinstance(summary, SessionSummary)
    assert isinstance(summary.id, UUID)
    assert summary.rendering == str(chess.Board())

    # Check persisted data
    stored = mock_repository.get(summary.id)
    assert stored is not None
    assert stored.board_state == chess.STARTING_FEN
    assert stored.status == Status.IN_PROGRESS
    assert stored.last_update == clock()
    assert stored.white_player == WHITE
    assert stored.black_player == BLACK
    assert stored.turn_token

    # Check notification
    assert sink.events == [NotificationEvent(player=WHITE, game=summary.id, token=stored.turn_token)]


def test_every_game_gets_its_own_id_and_token(
    service: GameSessionService, mock_repository: MockRepository
) -> None:
    first = service.create_game(WHITE, BLACK)
    second = service.create_game(WHITE, BLACK)

    assert first.id != second.id
    assert mock_repository.get(first.id).turn_token != mock_repository.get(second.id).turn_token


def test_create_survives_notification_failure(
    mock_repository: MockRepository, rules: ChessRulesEngine
) -> None:
    """Publishing is fire-and-forget: a broken sink does not undo or fail the creation."""
    service = GameSessionService(mock_repository, rules, FailingSink())
    summary = service.create_game(WHITE, BLACK)
    assert mock_repository.get(summary.id) is not None


# --- SERVICE - GET GAME ----
def test_get_existing_game(service: GameSessionService) -> None:
    summary = service.create_game(WHITE, BLACK)
    session = service.get_game(summary.id)
    assert session.id == summary.id
    assert session.board_state == chess.STARTING_FEN


def test_attempt_to_find_unknown_game(service: GameSessionService) -> None:
    with pytest.raises(NotFoundError):
        service.get_game(uuid4())


def test_repository_failure_reported_as_not_found(rules: ChessRulesEngine, sink: RecordingSink) -> None:
    service = GameSessionService(BrokenRepository(), rules, sink)
    with pytest.raises(NotFoundError):
        service.get_game(uuid4())


def test_list_games(service: GameSessionService) -> None:
    ids = {service.create_game(WHITE, BLACK).id for _ in range(3)}
    assert {session.id for session in service.list_games()} == ids


# --- SERVICE - LEGAL MOVES ----
def test_legal_moves_in_starting_position(service: GameSessionService) -> None:
    summary = service.create_game(WHITE, BLACK)
    moves = service.legal_moves(service.get_game(summary.id))
    assert len(moves) == 20
    assert "e2e4" in moves and "g1f3" in moves


def test_no_legal_moves_after_game_is_over(
    service: GameSessionService, mock_repository: MockRepository, clock: FakeClock
) -> None:
    session = _store_position(mock_repository, LADDER_MATE_FEN, clock)
    service.apply_move(session.id, "T0", "h7", "h8")
    assert service.legal_moves(service.get_game(session.id)) == []


def test_legal_moves_use_the_given_session_without_reading_again(
    rules: ChessRulesEngine, sink: RecordingSink, clock: FakeClock
) -> None:
    """The caller already holds the session, so a second repository read is never made."""
    service = GameSessionService(BrokenRepository(), rules, sink, clock=clock)
    session = GameSession(
        id=uuid4(),
        board_state=chess.STARTING_FEN,
        status=Status.IN_PROGRESS,
        last_update=clock(),
        white_player=WHITE,
        black_player=BLACK,
        turn_token="T0",
    )
    assert len(service.legal_moves(session)) == 20


# --- SERVICE - APPLY MOVE ---
def test_create_move_then_illegal_move(
    service: GameSessionService, mock_repository: MockRepository, sink: RecordingSink
) -> None:
    """White opens with the first token, black gets the rotated one, then tries an illegal move with it."""
    summary = service.create_game(WHITE, BLACK)
    t0 = mock_repository.get(summary.id).turn_token
    sink.clear()

    outcome = service.apply_move(summary.id, t0, "e2", "e4")
    assert outcome.message == MOVE_SUBMITTED
    assert outcome.finished is False

    after_move = mock_repository.get(summary.id)
    t1 = after_move.turn_token
    assert t1 != t0
    assert after_move.board_state == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    assert sink.events == [NotificationEvent(player=BLACK, game=summary.id, token=t1)]

    sink.clear()
    with pytest.raises(IllegalMoveError):
        service.apply_move(summary.id, t1, "e7", "e3")

    assert mock_repository.get(summary.id) == after_move
    assert sink.events == []


def test_next_player_alternates(service: GameSessionService, mock_repository: MockRepository, sink: RecordingSink) -> None:
    summary = service.create_game(WHITE, BLACK)

    for from_square, to_square, expected_player in [
        ("e2", "e4", BLACK),
        ("e7", "e5", WHITE),
        ("g1", "f3", BLACK),
    ]:
        token = mock_repository.get(summary.id).turn_token
        sink.clear()
        service.apply_move(summary.id, token, from_square, to_square)
        assert [event.player for event in sink.events] == [expected_player]


@pytest.mark.parametrize("presented_token", [None, "", "not-the-token"])
def test_wrong_or_missing_token_is_rejected(
    service: GameSessionService, mock_repository: MockRepository, sink: RecordingSink, presented_token: str | None
) -> None:
    summary = service.create_game(WHITE, BLACK)
    before = mock_repository.get(summary.id)
    sink.clear()

    with pytest.raises(UnauthorizedError):
        service.apply_move(summary.id, presented_token, "e2", "e4")

    assert mock_repository.get(summary.id) == before
    assert sink.events == []


def test_token_check_comes_before_legality(service: GameSessionService, mock_repository: MockRepository) -> None:
    """A wrong token does not reveal whether the attempted move would have been legal."""
    summary = service.create_game(WHITE, BLACK)
    with pytest.raises(UnauthorizedError):
        service.apply_move(summary.id, "not-the-token", "a1", "h8")


def test_superseded_token_never_authorizes_again(
    service: GameSessionService, mock_repository: MockRepository
) -> None:
    summary = service.create_game(WHITE, BLACK)
    t0 = mock_repository.get(summary.id).turn_token
    service.apply_move(summary.id, t0, "e2", "e4")
    t1 = mock_repository.get(summary.id).turn_token
    service.apply_move(summary.id, t1, "e7", "e5")
    before = mock_repository.get(summary.id)

    # Neither old token can be replayed, whatever the move
    for old_token in (t0, t1):
        with pytest.raises(UnauthorizedError):
            service.apply_move(summary.id, old_token, "g1", "f3")

    assert mock_repository.get(summary.id) == before


def test_move_in_unknown_game(service: GameSessionService) -> None:
    with pytest.raises(NotFoundError):
        service.apply_move(uuid4(), "T0", "e2", "e4")


def test_promotion(service: GameSessionService, mock_repository: MockRepository, clock: FakeClock) -> None:
    session = _store_position(mock_repository, "k7/4P3/8/8/8/8/8/K7 w - - 0 1", clock)

    # Without a promotion piece the move is not a legal move
    with pytest.raises(IllegalMoveError):
        service.apply_move(session.id, "T0", "e7", "e8")

    service.apply_move(session.id, "T0", "e7", "e8", promotion="n")
    assert mock_repository.get(session.id).board_state.startswith("k3N3/")


@pytest.mark.parametrize(
    "fen, from_square, to_square",
    [
        (LADDER_MATE_FEN, "h7", "h8"),
        (STALEMATE_FEN, "g5", "g6"),
        (BARE_KINGS_FEN, "a1", "b2"),
        (FIFTY_MOVES_FEN, "b1", "b2"),
    ],
    ids=["checkmate", "stalemate", "insufficient material", "fifty moves"],
)
def test_terminal_move_finishes_game(
    service: GameSessionService,
    mock_repository: MockRepository,
    sink: RecordingSink,
    clock: FakeClock,
    fen: str,
    from_square: str,
    to_square: str,
) -> None:
    """Checkmate, stalemate and draws all end the game the same way, and both players hear about it."""
    session = _store_position(mock_repository, fen, clock)

    outcome = service.apply_move(session.id, "T0", from_square, to_square)

    assert outcome.finished is True
    assert outcome.message == GAME_OVER
    assert mock_repository.get(session.id).status == Status.FINISHED
    assert sink.events == [
        NotificationEvent(player=WHITE, game=session.id, finished=True),
        NotificationEvent(player=BLACK, game=session.id, finished=True),
    ]


def test_finished_game_stays_finished(
    service: GameSessionService, mock_repository: MockRepository, clock: FakeClock
) -> None:
    session = _store_position(mock_repository, LADDER_MATE_FEN, clock)
    service.apply_move(session.id, "T0", "h7", "h8")
    finished = mock_repository.get(session.id)

    # Even the freshly rotated token cannot be used to continue a finished game
    with pytest.raises(UnauthorizedError):
        service.apply_move(session.id, finished.turn_token, "a8", "a7")

    assert mock_repository.get(session.id) == finished
    assert finished.status == Status.FINISHED


def test_last_update_is_refreshed_and_never_goes_back(
    service: GameSessionService, mock_repository: MockRepository, clock: FakeClock
) -> None:
    summary = service.create_game(WHITE, BLACK)
    created_at = mock_repository.get(summary.id).last_update

    clock.advance(timedelta(minutes=5))
    service.apply_move(summary.id, mock_repository.get(summary.id).turn_token, "e2", "e4")
    assert mock_repository.get(summary.id).last_update == created_at + timedelta(minutes=5)

    # Wall clock jumps backwards: stored timestamp does not
    clock.advance(timedelta(hours=-1))
    service.apply_move(summary.id, mock_repository.get(summary.id).turn_token, "e7", "e5")
    assert mock_repository.get(summary.id).last_update == created_at + timedelta(minutes=5)


def test_move_survives_notification_failure(mock_repository: MockRepository, rules: ChessRulesEngine) -> None:
    service = GameSessionService(mock_repository, rules, FailingSink())
    summary = service.create_game(WHITE, BLACK)
    token = mock_repository.get(summary.id).turn_token

    outcome = service.apply_move(summary.id, token, "e2", "e4")

    assert outcome.message == MOVE_SUBMITTED
    assert mock_repository.get(summary.id).turn_token != token


class SnapshotRepository(MockRepository):
    """Serves an old copy of one game on read, like a request that fetched it just before another move landed."""

    def __init__(self) -> None:
        super().__init__()
        self.snapshot: GameSession | None = None

    def get(self, game_id: UUID) -> GameSession | None:
        if self.snapshot is not None and self.snapshot.id == game_id:
            return replace(self.snapshot)
        return super().get(game_id)


def test_concurrent_move_with_same_token_loses(rules: ChessRulesEngine, sink: RecordingSink) -> None:
    """Two requests both validated the same token: only the first write wins, the second is rejected."""
    repository = SnapshotRepository()
    service = GameSessionService(repository, rules, sink)
    summary = service.create_game(WHITE, BLACK)
    read_by_both = repository.get(summary.id)

    service.apply_move(summary.id, read_by_both.turn_token, "e2", "e4")
    winner_state = repository.get(summary.id)

    repository.snapshot = read_by_both
    sink.clear()
    with pytest.raises(UnauthorizedError):
        service.apply_move(summary.id, read_by_both.turn_token, "d2", "d4")

    repository.snapshot = None
    assert repository.get(summary.id) == winner_state
    assert sink.events == []
