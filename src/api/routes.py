"""Game session endpoints. Thin layer: everything is delegated to GameSessionService."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import ServiceDep
from src.api.models import (
    CreateGameRequest,
    GameCreatedResponse,
    GameStateResponse,
    GameSummaryResponse,
    MoveRequest,
    MoveResponse,
)

router: APIRouter = APIRouter(prefix="/game", tags=["game"])


@router.post("", status_code=201)
def create_game(request: CreateGameRequest, service: ServiceDep) -> GameCreatedResponse:
    """Start a new game. The white player is notified with the first turn token."""
    summary = service.create_game(white=request.white_player, black=request.black_player)
    return GameCreatedResponse(id=summary.id, rendering=summary.rendering)


@router.get("")
def list_games(service: ServiceDep) -> list[GameSummaryResponse]:
    return [GameSummaryResponse.from_session(session) for session in service.list_games()]


@router.get("/{game_id}")
def get_game(game_id: UUID, service: ServiceDep) -> GameStateResponse:
    session = service.get_game(game_id)
    return GameStateResponse(
        id=session.id,
        board_state=session.board_state,
        status=session.status,
        legal_moves=service.legal_moves(session),
        rendering=service.render(session),
    )


@router.post("/{game_id}")
def make_move(
    game_id: UUID,
    request: MoveRequest,
    service: ServiceDep,
    token: Annotated[Optional[str], Query(description="Turn token received in the last notification")] = None,
) -> MoveResponse:
    outcome = service.apply_move(
        game_id,
        presented_token=token,
        from_square=request.from_square,
        to_square=request.to_square,
        promotion=request.promotion,
    )
    return MoveResponse(message=outcome.message, rendering=outcome.rendering, finished=outcome.finished)
