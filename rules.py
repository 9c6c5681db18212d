from typing import Iterable, List, Optional

WIN_LINES = [
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # cols
    (0, 4, 8), (2, 4, 6)              # diags
]


def board_from_moves(moves: Iterable) -> List[Optional[str]]:
    """Board of nine cells from move dicts or objects with .cell and .player."""
    board: List[Optional[str]] = [None] * 9
    for move in moves:
        if isinstance(move, dict):
            board[move["cell"]] = move["player"]
        else:
            board[move.cell] = move.player
    return board


def check_winner(board: List[Optional[str]]) -> Optional[str]:
    """'X', 'O', 'draw', or None while the game is still open."""
    for a, b, c in WIN_LINES:
        if board[a] and board[a] == board[b] == board[c]:
            return board[a]
    if all(cell is not None for cell in board):
        return "draw"
    return None
