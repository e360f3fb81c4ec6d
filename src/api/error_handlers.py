import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from src.core.exceptions import (
    IllegalMoveError,
    InvalidBoardStateError,
    InvalidRequestError,
    NotFoundError,
    RepositoryError,
    UnauthorizedError,
)

logger = structlog.get_logger(__name__)


def create_json_error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "type": error_type})


async def game_error_handler(request: Request, exc: Exception) -> Response:
    """Every GameError fails the single request it belongs to, with a status code matching its kind."""
    if isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, UnauthorizedError):
        status_code = 403
        error_type = "unauthorized"
    elif isinstance(exc, IllegalMoveError):
        status_code = 403
        error_type = "illegal_move"
    elif isinstance(exc, InvalidRequestError):
        status_code = 400
        error_type = "validation_error"
    elif isinstance(exc, (RepositoryError, InvalidBoardStateError)):
        # Stored data or the database itself is broken: not the caller's fault
        return await general_exception_handler(request, exc)
    else:
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
