"""GridXO package exposing the N×N game engine, AI helpers, and the web application."""

from .ai import DecisionEngine, MinimaxStrategy, OracleStrategy
from .board import Board, check_win, create_board, is_full, is_legal
from .game import GameConfig, GameSession, MatchMode, MatchStatus
from .ui import app

__all__ = [
    "Board",
    "DecisionEngine",
    "GameConfig",
    "GameSession",
    "MatchMode",
    "MatchStatus",
    "MinimaxStrategy",
    "OracleStrategy",
    "app",
    "check_win",
    "create_board",
    "is_full",
    "is_legal",
]
