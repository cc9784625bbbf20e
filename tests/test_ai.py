"""Tests for the GridXO move decision engine."""

import asyncio
import json
import random
import threading
from collections import Counter

import httpx
import pytest

from gridxo import ai
from gridxo.ai import (
    DecisionEngine,
    MinimaxStrategy,
    MoveDecisionError,
    OracleConfig,
    OracleStrategy,
    build_prompt,
    minimax_move,
    parse_move,
)
from gridxo.board import Board, check_win, create_board, empty_cells, is_full


def _board(size, cells):
    return Board(size=size, cells=tuple(cells))


def _gemini_reply(text, status_code=200):
    def handler(request):
        return httpx.Response(
            status_code,
            json={"candidates": [{"content": {"parts": [{"text": text}]}}]},
        )

    return handler


def _oracle(handler, api_key="test-key"):
    return OracleStrategy(
        config=OracleConfig(api_key=api_key),
        transport=httpx.MockTransport(handler),
    )


def _play_out(board, to_move, x_strategy, o_strategy):
    """Alternate moves until the game ends; return the winner or None."""
    while True:
        strategy = x_strategy if to_move == "X" else o_strategy
        index = strategy(board, to_move)
        board = board.place(index, to_move)
        if check_win(board, index, to_move):
            return to_move
        if is_full(board):
            return None
        to_move = "O" if to_move == "X" else "X"


def _minimax_player(board, symbol):
    return minimax_move(board, symbol, "O" if symbol == "X" else "X")


# ---- minimax ----


def test_minimax_opens_in_the_center():
    assert minimax_move(create_board(3), "X", "O") == 4
    assert minimax_move(create_board(3), "O", "X") == 4


def test_minimax_takes_immediate_win():
    board = _board(3, ["X", "X", None, "O", "O", None, None, None, None])
    assert minimax_move(board, "X", "O") == 2


def test_minimax_blocks_opponent():
    board = _board(3, ["X", "X", None, None, "O", None, None, None, None])
    assert minimax_move(board, "O", "X") == 2


def test_minimax_prefers_faster_win():
    # 1 and 2 set up a double threat; 8 completes the diagonal right away.
    board = _board(3, ["X", None, None, "O", "X", None, "O", None, None])
    assert minimax_move(board, "X", "O") == 8


def test_minimax_only_for_3x3():
    with pytest.raises(ValueError):
        minimax_move(create_board(4), "X", "O")


def test_minimax_does_not_touch_input_board():
    board = _board(3, ["X", None, None, None, "O", None, None, None, None])
    before = board.cells
    minimax_move(board, "X", "O")
    assert board.cells == before


@pytest.mark.parametrize("opening", range(9))
def test_minimax_self_play_is_a_draw(opening):
    board = create_board(3).place(opening, "X")
    assert _play_out(board, "O", _minimax_player, _minimax_player) is None


@pytest.mark.parametrize("ai_symbol", ["X", "O"])
def test_minimax_never_loses_to_any_line_of_play(ai_symbol):
    human = "O" if ai_symbol == "X" else "X"

    def explore(board, to_move):
        if to_move == ai_symbol:
            moves = [minimax_move(board, ai_symbol, human)]
        else:
            moves = empty_cells(board)
        for index in moves:
            after = board.place(index, to_move)
            if check_win(after, index, to_move):
                assert to_move == ai_symbol
                continue
            if is_full(after):
                continue
            explore(after, ai_symbol if to_move == human else human)

    explore(create_board(3), "X")


# ---- oracle ----


def test_prompt_describes_position():
    board = create_board(4).place(5, "X")
    prompt = build_prompt(board, "O", "X")
    assert prompt.startswith("Play Tic-Tac-Toe (4x4).")
    assert "[null, null, null, null, null, \"X\"" in prompt
    assert "You are 'O', Opponent is 'X'" in prompt
    assert "(0-15)" in prompt


def test_parse_move_takes_first_integer():
    board = create_board(4)
    assert parse_move("7", board) == 7
    assert parse_move("  I will play 12, then 3.", board) == 12


@pytest.mark.parametrize("text", ["", "center please", "16", "99", "-3", "move -1"])
def test_parse_move_rejects_unusable_replies(text):
    with pytest.raises(MoveDecisionError):
        parse_move(text, create_board(4))


def test_parse_move_rejects_occupied_cell():
    board = create_board(4).place(3, "X")
    with pytest.raises(MoveDecisionError):
        parse_move("3", board)


def test_oracle_sends_prompt_and_key():
    seen = []

    def handler(request):
        seen.append(request)
        return _gemini_reply("9")(request)

    strategy = _oracle(handler)
    move = asyncio.run(strategy.choose(create_board(4), "O", "X"))

    assert move == 9
    request = seen[0]
    assert request.method == "POST"
    assert request.url.params["key"] == "test-key"
    assert request.url.path.endswith(":generateContent")
    body = json.loads(request.content)
    assert "Play Tic-Tac-Toe (4x4)" in body["contents"][0]["parts"][0]["text"]


def test_oracle_without_key_never_calls_out():
    calls = []

    def handler(request):
        calls.append(request)
        return _gemini_reply("1")(request)

    strategy = _oracle(handler, api_key=None)
    with pytest.raises(MoveDecisionError):
        asyncio.run(strategy.choose(create_board(4), "O", "X"))
    assert calls == []


@pytest.mark.parametrize(
    "handler",
    [
        _gemini_reply("3", status_code=500),
        _gemini_reply("not a number"),
        lambda request: httpx.Response(200, json={"candidates": []}),
        lambda request: httpx.Response(200, text="<html>oops</html>"),
    ],
)
def test_oracle_failures_raise(handler):
    with pytest.raises(MoveDecisionError):
        asyncio.run(_oracle(handler).choose(create_board(4), "O", "X"))


def test_oracle_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(MoveDecisionError):
        asyncio.run(_oracle(handler).choose(create_board(5), "O", "X"))


def test_oracle_config_from_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "abc")
    monkeypatch.setenv("GRIDXO_ORACLE_MODEL", "some-model")
    monkeypatch.setenv("GRIDXO_ORACLE_TIMEOUT", "2.5")
    config = OracleConfig.from_env()
    assert config.api_key == "abc"
    assert config.timeout == 2.5
    assert config.endpoint.endswith("/some-model:generateContent")


# ---- engine ----


def test_engine_uses_minimax_for_3x3():
    engine = DecisionEngine(exhaustive=MinimaxStrategy(think_delay=0))
    board = _board(3, ["X", "X", None, "O", "O", None, None, None, None])
    assert asyncio.run(engine.decide_move(board, "O", "X")) == 5


def test_engine_uses_oracle_for_larger_boards():
    engine = DecisionEngine(oracle=_oracle(_gemini_reply("10")))
    assert asyncio.run(engine.decide_move(create_board(6), "X", "O")) == 10


def test_engine_falls_back_to_random_legal_move_uniformly():
    board = create_board(4)
    for index in range(6):
        board = board.place(index, "X" if index % 2 else "O")
    legal = empty_cells(board)

    engine = DecisionEngine(
        oracle=_oracle(_gemini_reply("0")),  # occupied cell
        rng=random.Random(1234),
    )

    async def trials(n):
        return [await engine.decide_move(board, "X", "O") for _ in range(n)]

    counts = Counter(asyncio.run(trials(2000)))
    assert set(counts) == set(legal)
    expected = 2000 / len(legal)
    for index in legal:
        assert 0.7 * expected < counts[index] < 1.3 * expected


def test_engine_falls_back_when_strategy_raises():
    class Broken:
        async def choose(self, board, ai_symbol, opponent_symbol):
            raise MoveDecisionError("boom")

    engine = DecisionEngine(exhaustive=Broken())
    board = _board(3, ["X", "O", "X", "O", "X", "O", None, None, None])
    move = asyncio.run(engine.decide_move(board, "O", "X"))
    assert move in (6, 7, 8)


def test_engine_falls_back_when_strategy_crashes():
    class Crashing:
        async def choose(self, board, ai_symbol, opponent_symbol):
            raise RuntimeError("unexpected oracle failure")

    engine = DecisionEngine(oracle=Crashing())
    board = create_board(4).place(0, "X")
    move = asyncio.run(engine.decide_move(board, "O", "X"))
    assert move in empty_cells(board)


def test_minimax_strategy_searches_off_the_event_loop(monkeypatch):
    threads = []

    def recording_minimax(board, ai_symbol, opponent_symbol):
        threads.append(threading.get_ident())
        return minimax_move(board, ai_symbol, opponent_symbol)

    monkeypatch.setattr(ai, "minimax_move", recording_minimax)

    async def choose():
        loop_thread = threading.get_ident()
        board = create_board(3).place(0, "X")
        move = await MinimaxStrategy(think_delay=0).choose(board, "O", "X")
        return loop_thread, move

    loop_thread, move = asyncio.run(choose())
    assert move == 4
    assert threads and threads[0] != loop_thread


def test_engine_refuses_full_board():
    board = _board(3, ["X", "O", "X", "X", "O", "O", "O", "X", "X"])
    with pytest.raises(ValueError):
        asyncio.run(DecisionEngine().decide_move(board, "X", "O"))
