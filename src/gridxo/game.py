"""Game session controller: configuration, players, turn order and AI turns."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .ai import DecisionEngine
from .board import (
    MAX_SIZE,
    MIN_SIZE,
    SYMBOLS,
    Board,
    Symbol,
    check_win,
    create_board,
    is_full,
    is_legal,
    opponent_of,
)


logger = logging.getLogger(__name__)

AI_PLAYER_NAME = "Terminator Bot"
SECOND_PLAYER_NAME = "Player 2"


class MatchMode(str, Enum):
    HUMAN_VS_HUMAN = "pvp"
    HUMAN_VS_AI = "pvai"


class PlayerKind(str, Enum):
    HUMAN = "human"
    AI = "ai"


class MatchStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAWN = "drawn"


@dataclass(frozen=True)
class PlayerInfo:
    name: str
    symbol: Symbol
    kind: PlayerKind

    @property
    def is_automated(self) -> bool:
        return self.kind is PlayerKind.AI


@dataclass(frozen=True)
class GameConfig:
    """Settings chosen on the setup screen; fixed for the life of a session."""

    size: int = 3
    player_name: str = "Player 1"
    player_symbol: Symbol = "X"
    mode: MatchMode = MatchMode.HUMAN_VS_AI

    def __post_init__(self) -> None:
        if not MIN_SIZE <= self.size <= MAX_SIZE:
            raise ValueError(
                f"Unsupported board size {self.size}. "
                f"Choose a size between {MIN_SIZE} and {MAX_SIZE}."
            )
        if self.player_symbol not in SYMBOLS:
            raise ValueError(f"Unknown symbol {self.player_symbol!r}")
        # Accept plain strings such as "pvai" for the mode.
        object.__setattr__(self, "mode", MatchMode(self.mode))

    def players(self) -> Tuple[PlayerInfo, PlayerInfo]:
        """The configuring human first, then the opponent holding the other symbol."""
        versus_ai = self.mode is MatchMode.HUMAN_VS_AI
        first = PlayerInfo(self.player_name, self.player_symbol, PlayerKind.HUMAN)
        second = PlayerInfo(
            AI_PLAYER_NAME if versus_ai else SECOND_PLAYER_NAME,
            opponent_of(self.player_symbol),
            PlayerKind.AI if versus_ai else PlayerKind.HUMAN,
        )
        return first, second


@dataclass
class GameState:
    board: Board
    turn: int = 0
    last_move: Optional[int] = None
    status: MatchStatus = MatchStatus.IN_PROGRESS
    winner: Optional[PlayerInfo] = None

    @classmethod
    def fresh(cls, size: int) -> "GameState":
        return cls(board=create_board(size))

    @property
    def finished(self) -> bool:
        return self.status is not MatchStatus.IN_PROGRESS


@dataclass(frozen=True)
class SessionEvent:
    # "session_started", "move_applied", "turn_changed", "game_over", "abandoned"
    kind: str
    generation: int
    index: Optional[int] = None


Listener = Callable[[SessionEvent], None]


@dataclass
class GameSession:
    """Drives one game at a time and the automated opponent's turns.

    Every start (new game or replay) and every abandon bumps ``generation``.
    An automated move is only applied if the generation it was requested
    under is still current, so a late answer never lands on a newer game.
    Automated turns run as asyncio tasks; a running event loop is required
    whenever an automated player is configured.
    """

    config: GameConfig = field(default_factory=GameConfig)
    engine: DecisionEngine = field(default_factory=DecisionEngine)
    players: Tuple[PlayerInfo, PlayerInfo] = field(init=False)
    state: GameState = field(init=False)
    generation: int = field(default=0, init=False)
    active: bool = field(default=False, init=False)
    _listeners: List[Listener] = field(default_factory=list, init=False, repr=False)
    _pending: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.players = self.config.players()
        self.state = GameState.fresh(self.config.size)
        self.subscribe(self._on_event)

    # ---- events ----

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _emit(self, kind: str, index: Optional[int] = None) -> None:
        event = SessionEvent(kind=kind, generation=self.generation, index=index)
        for listener in list(self._listeners):
            listener(event)

    def _on_event(self, event: SessionEvent) -> None:
        if event.kind in ("session_started", "turn_changed"):
            self._schedule_automated_turn()

    # ---- lifecycle ----

    def start(self, config: Optional[GameConfig] = None) -> GameState:
        """Begin a new game, optionally with a new configuration."""
        self._cancel_pending()
        if config is not None:
            self.config = config
        self.players = self.config.players()
        self.state = GameState.fresh(self.config.size)
        self.generation += 1
        self.active = True
        logger.info(
            "Session %d started: %dx%d, %s",
            self.generation,
            self.config.size,
            self.config.size,
            self.config.mode.value,
        )
        self._emit("session_started")
        return self.state

    def replay(self) -> GameState:
        return self.start()

    def abandon(self) -> None:
        """Leave the game (back to setup); a pending automated move is dropped."""
        self._cancel_pending()
        self.generation += 1
        self.active = False
        logger.info("Session abandoned")
        self._emit("abandoned")

    # ---- queries ----

    @property
    def current_player(self) -> PlayerInfo:
        return self.players[self.state.turn]

    @property
    def opponent(self) -> PlayerInfo:
        return self.players[1 - self.state.turn]

    @property
    def thinking(self) -> bool:
        return self._pending is not None and not self._pending.done()

    # ---- moves ----

    def select_cell(self, index: int) -> bool:
        """Apply a human's cell selection; returns ``False`` when it is ignored."""
        if not self._can_move(index):
            return False
        if self.current_player.is_automated:
            return False
        self._apply_move(index)
        return True

    def _can_move(self, index: int) -> bool:
        return (
            self.active
            and not self.state.finished
            and is_legal(self.state.board, index)
        )

    def _apply_move(self, index: int) -> None:
        state = self.state
        mover = self.current_player
        state.board = state.board.place(index, mover.symbol)
        state.last_move = index
        logger.debug("%s (%s) played %d", mover.name, mover.symbol, index)

        if check_win(state.board, index, mover.symbol):
            state.status = MatchStatus.WON
            state.winner = mover
            logger.info("%s wins session %d", mover.name, self.generation)
        elif is_full(state.board):
            state.status = MatchStatus.DRAWN
            logger.info("Session %d drawn", self.generation)
        else:
            state.turn = 1 - state.turn

        self._emit("move_applied", index)
        self._emit("game_over" if state.finished else "turn_changed", index)

    # ---- automated turns ----

    def _schedule_automated_turn(self) -> None:
        if not self.active or self.state.finished:
            return
        if not self.current_player.is_automated or self.thinking:
            return
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._automated_turn(self.generation))

    async def _automated_turn(self, generation: int) -> None:
        player, opponent = self.current_player, self.opponent
        index = await self.engine.decide_move(
            self.state.board, player.symbol, opponent.symbol
        )
        if generation != self.generation:
            logger.debug(
                "Discarding move %d from stale session %d", index, generation
            )
            return
        if not self._can_move(index) or self.current_player != player:
            logger.warning("Automated move %d is no longer playable", index)
            return
        self._pending = None
        self._apply_move(index)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def wait_idle(self) -> None:
        """Wait until no automated move is pending."""
        while self.thinking:
            task = self._pending
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
