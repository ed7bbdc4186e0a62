"""Position keys: the board-layout projection of a full FEN."""

import chess


def position_fen(fen: str) -> str:
    """Return the board field of a FEN (no turn, castling, en passant or counters)."""
    if not fen:
        return ""
    parts = fen.split()
    return parts[0] if parts else ""


def is_valid_position(fen: str) -> bool:
    """Check that the board field parses as a chess board layout."""
    board_part = position_fen(fen)
    if not board_part:
        return False
    try:
        chess.BaseBoard(board_part)
    except ValueError:
        return False
    return True
