"""Board model and win/draw evaluation for N×N GridXO boards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

Symbol = str  # "X" or "O"
Cell = Optional[Symbol]

SYMBOLS: Tuple[Symbol, Symbol] = ("X", "O")
MIN_SIZE = 3
MAX_SIZE = 6


def opponent_of(symbol: Symbol) -> Symbol:
    if symbol not in SYMBOLS:
        raise ValueError(f"Unknown symbol {symbol!r}")
    return "O" if symbol == "X" else "X"


@dataclass(frozen=True)
class Board:
    """Immutable ``size`` × ``size`` grid stored row-major; ``None`` is empty."""

    size: int
    cells: Tuple[Cell, ...]

    def __post_init__(self) -> None:
        if len(self.cells) != self.size * self.size:
            raise ValueError(
                f"Board of size {self.size} needs {self.size * self.size} cells, "
                f"got {len(self.cells)}"
            )

    def __len__(self) -> int:
        return len(self.cells)

    def __getitem__(self, index: int) -> Cell:
        return self.cells[index]

    def row_col(self, index: int) -> Tuple[int, int]:
        return divmod(index, self.size)

    def place(self, index: int, symbol: Symbol) -> "Board":
        """Return a new board with ``symbol`` written into the empty cell ``index``."""
        if symbol not in SYMBOLS:
            raise ValueError(f"Unknown symbol {symbol!r}")
        if not is_legal(self, index):
            raise ValueError(f"Cell {index} is not available")
        cells = list(self.cells)
        cells[index] = symbol
        return Board(size=self.size, cells=tuple(cells))


def create_board(size: int) -> Board:
    if not MIN_SIZE <= size <= MAX_SIZE:
        raise ValueError(
            f"Unsupported board size {size}. "
            f"Choose a size between {MIN_SIZE} and {MAX_SIZE}."
        )
    return Board(size=size, cells=(None,) * (size * size))


def is_legal(board: Board, index: int) -> bool:
    return 0 <= index < len(board.cells) and board.cells[index] is None


def is_full(board: Board) -> bool:
    return all(cell is not None for cell in board.cells)


def empty_cells(board: Board) -> List[int]:
    return [i for i, cell in enumerate(board.cells) if cell is None]


def check_win(board: Board, last_move: Optional[int], symbol: Symbol) -> bool:
    """Return whether the move just played at ``last_move`` completed a line.

    Only the row, the column and (when the cell lies on them) the two
    diagonals through ``last_move`` are inspected, so the answer is only
    meaningful immediately after that move was applied. Do not use this to
    re-check an arbitrary position.
    """
    if last_move is None:
        return False
    n = board.size
    cells = board.cells
    row, col = divmod(last_move, n)

    if all(cells[row * n + c] == symbol for c in range(n)):
        return True
    if all(cells[r * n + col] == symbol for r in range(n)):
        return True
    if row == col and all(cells[i * n + i] == symbol for i in range(n)):
        return True
    if row + col == n - 1 and all(
        cells[i * n + (n - 1 - i)] == symbol for i in range(n)
    ):
        return True
    return False
