"""
Rules oracle used by the service layer.

The service never interprets a board state itself: it hands the FEN string to a RulesEngine,
which loads it into an engine specific handle, applies moves and reports terminal conditions.
"""

from typing import Any, Optional, Protocol

import chess

from src.core.exceptions import IllegalMoveError, InvalidBoardStateError
from src.core.shared_types import Color

PROMOTION_PIECES = {"q", "r", "b", "n"}

# Whatever object the engine uses to represent a loaded board state
BoardHandle = Any


class RulesEngine(Protocol):
    """Opaque capability: instantiate a board state, apply a move, detect the end of the game."""

    def initial(self) -> str:
        """Board state of the canonical starting position."""
        ...

    def load(self, board_state: str) -> BoardHandle:
        """Instantiate a board state. Raises InvalidBoardStateError if it cannot be parsed."""
        ...

    def apply_move(
        self,
        board: BoardHandle,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> str:
        """Play the move on the handle and return the new board state. Raises IllegalMoveError if rejected."""
        ...

    def is_checkmate(self, board: BoardHandle) -> bool: ...

    def is_draw(self, board: BoardHandle) -> bool: ...

    def is_stalemate(self, board: BoardHandle) -> bool: ...

    def side_to_move(self, board: BoardHandle) -> Color: ...

    def legal_moves(self, board: BoardHandle) -> list[str]: ...

    def render(self, board: BoardHandle) -> str: ...


class ChessRulesEngine:
    """RulesEngine backed by python-chess. Board states are FEN strings."""

    def initial(self) -> str:
        return chess.STARTING_FEN

    def load(self, board_state: str) -> chess.Board:
        try:
            board = chess.Board(board_state)
        except ValueError as e:
            raise InvalidBoardStateError(
                f"Cannot interpret supplied string as FEN: {board_state!r}"
            ) from e
        if not board.is_valid():
            raise InvalidBoardStateError(f"FEN describes an impossible position: {board_state!r}")
        return board

    def apply_move(
        self,
        board: chess.Board,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> str:
        uci = build_uci(from_square, to_square, promotion)
        try:
            move = chess.Move.from_uci(uci)
        except ValueError as e:
            raise IllegalMoveError(f"Cannot interpret move: {uci}") from e

        if move not in board.legal_moves:
            raise IllegalMoveError(f"Illegal move! Cannot move {from_square} to {to_square}")

        board.push(move)
        return board.fen()

    def is_checkmate(self, board: chess.Board) -> bool:
        return board.is_checkmate()

    def is_draw(self, board: chess.Board) -> bool:
        """50 half-moves without capture or pawn move, insufficient material, or threefold repetition."""
        return (
            board.is_fifty_moves()
            or board.is_insufficient_material()
            or board.is_repetition(3)
        )

    def is_stalemate(self, board: chess.Board) -> bool:
        return board.is_stalemate()

    def side_to_move(self, board: chess.Board) -> Color:
        return Color.WHITE if board.turn == chess.WHITE else Color.BLACK

    def legal_moves(self, board: chess.Board) -> list[str]:
        return sorted(move.uci() for move in board.legal_moves)

    def render(self, board: chess.Board) -> str:
        return str(board)


def build_uci(from_square: str, to_square: str, promotion: Optional[str] = None) -> str:
    """Square names (+ optional promotion piece letter) to a UCI string, e.g. ("e7", "e8", "q") -> "e7e8q"."""
    uci = f"{from_square}{to_square}".lower()
    if promotion:
        piece = promotion.lower()
        if piece not in PROMOTION_PIECES:
            raise IllegalMoveError(f"Cannot promote to {promotion!r}")
        uci += piece
    return uci


def is_terminal(rules: RulesEngine, board: BoardHandle) -> bool:
    """Checkmate, draw and stalemate all collapse to a single 'finished' flag."""
    return rules.is_checkmate(board) or rules.is_draw(board) or rules.is_stalemate(board)
