"""Custom exceptions shared across layers. Everything raised on purpose by this application derives from GameError."""


class GameError(Exception):
    """Top-level exception for the chess session service."""


class NotFoundError(GameError):
    """No game session is stored under the requested ID."""


class UnauthorizedError(GameError):
    """Presented turn token is missing, wrong or already superseded."""


class IllegalMoveError(GameError):
    """Rules engine rejected the attempted move."""


class InvalidRequestError(GameError):
    """Malformed request payload (raised from the request model validators)."""


class InvalidBoardStateError(GameError):
    """Board state serialization could not be loaded by the rules engine."""


class RepositoryError(GameError):
    """Persistence layer failed to read or write a record."""
