"""Move decision engine: perfect-play minimax for 3×3, an LLM oracle beyond."""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import math
import os
import random
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import httpx

from .board import Board, Cell, Symbol, check_win, empty_cells, is_full, is_legal


logger = logging.getLogger(__name__)

EXHAUSTIVE_SIZE = 3
WIN_SCORE = 10
DEFAULT_THINK_DELAY = 0.5

DEFAULT_ORACLE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_ORACLE_MODEL = "gemini-2.5-flash"
DEFAULT_ORACLE_TIMEOUT = 10.0

_INTEGER = re.compile(r"-?\d+")


class MoveDecisionError(Exception):
    """A strategy could not produce a move; the engine falls back to a random one."""


# ---- exhaustive strategy ----


def minimax_move(board: Board, ai_symbol: Symbol, opponent_symbol: Symbol) -> int:
    """Best move for ``ai_symbol`` on a 3×3 board by full minimax search.

    The opening move is always the center. Ties go to the lowest index.
    """
    if board.size != EXHAUSTIVE_SIZE:
        raise ValueError(
            f"Minimax search only supports {EXHAUSTIVE_SIZE}x{EXHAUSTIVE_SIZE} boards"
        )
    moves = empty_cells(board)
    if not moves:
        raise ValueError("No valid moves available")
    if len(moves) == len(board):
        return len(board) // 2
    return _search(board.cells, ai_symbol, opponent_symbol)


@functools.lru_cache(maxsize=4096)
def _search(
    position: Tuple[Cell, ...], ai_symbol: Symbol, opponent_symbol: Symbol
) -> int:
    # Provisional moves are written into this private copy and reverted.
    cells: List[Cell] = list(position)
    best_move = -1
    best_score = -math.inf
    for index, cell in enumerate(position):
        if cell is not None:
            continue
        cells[index] = ai_symbol
        score = _minimax(
            cells, EXHAUSTIVE_SIZE, index, ai_symbol, ai_symbol, opponent_symbol, 0
        )
        cells[index] = None
        if score > best_score:
            best_score, best_move = score, index
    return best_move


def _minimax(
    cells: List[Cell],
    size: int,
    last_move: int,
    last_symbol: Symbol,
    ai_symbol: Symbol,
    opponent_symbol: Symbol,
    depth: int,
) -> int:
    position = Board(size=size, cells=tuple(cells))
    if check_win(position, last_move, last_symbol):
        return WIN_SCORE - depth if last_symbol == ai_symbol else depth - WIN_SCORE
    if is_full(position):
        return 0

    # Whoever did not just move is to play; the AI maximizes.
    maximizing = last_symbol == opponent_symbol
    mover = ai_symbol if maximizing else opponent_symbol
    best = -math.inf if maximizing else math.inf
    for index, cell in enumerate(cells):
        if cell is not None:
            continue
        cells[index] = mover
        score = _minimax(
            cells, size, index, mover, ai_symbol, opponent_symbol, depth + 1
        )
        cells[index] = None
        best = max(best, score) if maximizing else min(best, score)
    return int(best)


def random_move(board: Board, rng: Optional[random.Random] = None) -> int:
    moves = empty_cells(board)
    if not moves:
        raise ValueError("No valid moves available")
    return (rng or random).choice(moves)


@dataclass
class MinimaxStrategy:
    """Exhaustive search, paced by a short pause so the reply doesn't feel instant."""

    think_delay: float = DEFAULT_THINK_DELAY

    async def choose(
        self, board: Board, ai_symbol: Symbol, opponent_symbol: Symbol
    ) -> int:
        if self.think_delay > 0:
            await asyncio.sleep(self.think_delay)
        # The search is CPU-bound; keep it off the event loop.
        return await asyncio.to_thread(
            minimax_move, board, ai_symbol, opponent_symbol
        )


# ---- oracle strategy ----


@dataclass(frozen=True)
class OracleConfig:
    api_key: Optional[str] = None
    model: str = DEFAULT_ORACLE_MODEL
    base_url: str = DEFAULT_ORACLE_URL
    timeout: float = DEFAULT_ORACLE_TIMEOUT

    @classmethod
    def from_env(cls) -> "OracleConfig":
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY") or None,
            model=os.environ.get("GRIDXO_ORACLE_MODEL", DEFAULT_ORACLE_MODEL),
            base_url=os.environ.get("GRIDXO_ORACLE_URL", DEFAULT_ORACLE_URL),
            timeout=float(
                os.environ.get("GRIDXO_ORACLE_TIMEOUT", str(DEFAULT_ORACLE_TIMEOUT))
            ),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.model}:generateContent"


def build_prompt(board: Board, ai_symbol: Symbol, opponent_symbol: Symbol) -> str:
    n = board.size
    return (
        f"Play Tic-Tac-Toe ({n}x{n}). Board: {json.dumps(list(board.cells))}. "
        f"You are '{ai_symbol}', Opponent is '{opponent_symbol}'. "
        f"Return ONLY integer index (0-{n * n - 1})."
    )


def parse_move(text: str, board: Board) -> int:
    """Extract the first integer in ``text`` and check it names an empty cell."""
    match = _INTEGER.search(text or "")
    if match is None:
        raise MoveDecisionError(f"Oracle reply has no move: {text!r}")
    move = int(match.group())
    if not is_legal(board, move):
        raise MoveDecisionError(f"Oracle proposed illegal cell {move}")
    return move


@dataclass
class OracleStrategy:
    """Ask a Gemini text-generation endpoint for the next cell index.

    ``transport`` is handed to :class:`httpx.AsyncClient`, which lets tests
    plug in :class:`httpx.MockTransport`.
    """

    config: OracleConfig = field(default_factory=OracleConfig.from_env)
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    async def choose(
        self, board: Board, ai_symbol: Symbol, opponent_symbol: Symbol
    ) -> int:
        if not self.config.api_key:
            raise MoveDecisionError("No oracle API key configured")

        payload = {
            "contents": [
                {"parts": [{"text": build_prompt(board, ai_symbol, opponent_symbol)}]}
            ]
        }
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.config.timeout
            ) as client:
                response = await client.post(
                    self.config.endpoint,
                    params={"key": self.config.api_key},
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise MoveDecisionError(f"Oracle request failed: {exc}") from exc
        except ValueError as exc:
            raise MoveDecisionError("Oracle returned invalid JSON") from exc

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MoveDecisionError("Oracle reply has an unexpected shape") from exc
        return parse_move(str(text), board)


# ---- engine ----


@dataclass
class DecisionEngine:
    """Pick a move for the automated player, falling back to a random cell.

    3×3 boards are searched exhaustively; larger boards go to the oracle.
    """

    exhaustive: MinimaxStrategy = field(default_factory=MinimaxStrategy)
    oracle: OracleStrategy = field(default_factory=OracleStrategy)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def strategy_for(self, board: Board):
        return self.exhaustive if board.size == EXHAUSTIVE_SIZE else self.oracle

    async def decide_move(
        self, board: Board, ai_symbol: Symbol, opponent_symbol: Symbol
    ) -> int:
        if is_full(board):
            raise ValueError("No valid moves available")
        strategy = self.strategy_for(board)
        try:
            return await strategy.choose(board, ai_symbol, opponent_symbol)
        except MoveDecisionError as exc:
            move = random_move(board, self.rng)
            logger.warning(
                "%s failed (%s); playing random cell %d",
                type(strategy).__name__,
                exc,
                move,
            )
            return move
        except Exception:
            move = random_move(board, self.rng)
            logger.exception(
                "%s crashed; playing random cell %d", type(strategy).__name__, move
            )
            return move
