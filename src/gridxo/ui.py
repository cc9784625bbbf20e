"""FastAPI-powered web UI for playing GridXO in the browser."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Optional, Tuple

from fastapi import FastAPI, HTTPException, Response
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import DecisionEngine, MinimaxStrategy
from .board import MAX_SIZE, MIN_SIZE, SYMBOLS
from .game import GameConfig, GameSession, MatchMode, PlayerInfo


logger = logging.getLogger(__name__)

SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="GridXO", description="N×N tic-tac-toe played in the browser")


AI_THINK_DELAY: float = 0.5


class NewGameRequest(BaseModel):
    """Request payload for starting a new game from the setup screen."""

    model_config = ConfigDict(populate_by_name=True)

    size: int = Field(default=3, ge=MIN_SIZE, le=MAX_SIZE, description="Grid size N")
    player_name: str = Field(
        default="Player 1", alias="playerName", min_length=1, max_length=40
    )
    player_symbol: str = Field(default="X", alias="playerSymbol")
    mode: MatchMode = MatchMode.HUMAN_VS_AI

    @field_validator("player_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Player name must not be blank")
        return value

    @field_validator("player_symbol")
    @classmethod
    def ensure_known_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in SYMBOLS:
            raise ValueError(f"Unsupported symbol {value!r}. Choose X or O.")
        return value

    def to_config(self) -> GameConfig:
        return GameConfig(
            size=self.size,
            player_name=self.player_name,
            player_symbol=self.player_symbol,
            mode=self.mode,
        )


class MoveRequest(BaseModel):
    """Request payload for selecting a cell on an existing game."""

    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, lt=MAX_SIZE * MAX_SIZE)


def _create_session(config: GameConfig) -> Tuple[str, GameSession]:
    """Create and start a new game session and register it for later access."""

    engine = DecisionEngine(exhaustive=MinimaxStrategy(think_delay=AI_THINK_DELAY))
    session = GameSession(config=config, engine=engine)
    session.start()
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    return session_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _serialize_player(player: Optional[PlayerInfo]) -> Optional[Dict[str, str]]:
    if player is None:
        return None
    return {"name": player.name, "symbol": player.symbol, "kind": player.kind.value}


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    state = session.state
    return {
        "id": game_id,
        "size": state.board.size,
        "board": list(state.board.cells),
        "players": [_serialize_player(p) for p in session.players],
        "turn": state.turn,
        "currentPlayer": _serialize_player(session.current_player),
        "status": state.status.value,
        "winner": _serialize_player(state.winner),
        "lastMove": state.last_move,
        "thinking": session.thinking,
    }


@app.post("/api/game")
async def create_game(request: NewGameRequest) -> Dict[str, object]:
    game_id, session = _create_session(request.to_config())
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
async def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
async def make_move(game_id: str, request: MoveRequest) -> Dict[str, object]:
    session = _get_session(game_id)
    accepted = session.select_cell(request.cell_index)
    if not accepted:
        logger.debug("Ignored selection of cell %d in %s", request.cell_index, game_id)
    state = _serialize_session(game_id, session)
    state["accepted"] = accepted
    return state


@app.post("/api/game/{game_id}/replay")
async def replay_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    session.replay()
    return _serialize_session(game_id, session)


@app.delete("/api/game/{game_id}", status_code=204)
async def abandon_game(game_id: str) -> Response:
    session = _get_session(game_id)
    session.abandon()
    SESSIONS.pop(game_id, None)
    return Response(status_code=204)


@app.get("/", response_class=HTMLResponse)
async def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>GridXO</title>
    <style>
      :root {
        --bg: #f8fafc;
        --card: #ffffff;
        --ink: #0f172a;
        --muted: #64748b;
        --accent: #4f46e5;
        --x: #3b82f6;
        --o: #f43f5e;
      }
      * { box-sizing: border-box; }
      body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        align-items: center;
        justify-content: center;
        background: var(--bg);
        color: var(--ink);
        font-family: system-ui, -apple-system, \"Segoe UI\", sans-serif;
      }
      .card {
        background: var(--card);
        border-radius: 1rem;
        box-shadow: 0 10px 30px rgba(15, 23, 42, 0.08);
        padding: 2rem;
        width: min(92vw, 520px);
      }
      h1 { margin: 0 0 0.25rem; text-align: center; }
      .subtitle { color: var(--muted); text-align: center; margin: 0 0 1.5rem; }
      label { display: block; font-weight: 600; margin: 1rem 0 0.4rem; }
      input[type=text] {
        width: 100%;
        padding: 0.55rem 0.8rem;
        border: 1px solid #cbd5e1;
        border-radius: 0.5rem;
        font-size: 1rem;
      }
      .row { display: flex; gap: 0.75rem; align-items: center; }
      .toggle button {
        flex: 1;
        padding: 0.7rem;
        border: 2px solid #e2e8f0;
        background: white;
        border-radius: 0.75rem;
        font-weight: 600;
        cursor: pointer;
      }
      .toggle button.selected { border-color: var(--accent); color: var(--accent); }
      .primary {
        width: 100%;
        margin-top: 1.5rem;
        padding: 0.9rem;
        border: 0;
        border-radius: 0.75rem;
        background: var(--accent);
        color: white;
        font-size: 1.1rem;
        font-weight: 700;
        cursor: pointer;
      }
      .header { display: flex; justify-content: space-between; align-items: center; }
      .header button {
        border: 0;
        background: #f1f5f9;
        border-radius: 999px;
        padding: 0.45rem 0.8rem;
        cursor: pointer;
      }
      .players { display: flex; gap: 1.5rem; align-items: center; }
      .player { text-align: center; opacity: 0.45; }
      .player.active { opacity: 1; }
      .player .symbol { font-size: 1.8rem; font-weight: 900; }
      .player .name { font-size: 0.75rem; font-weight: 700; text-transform: uppercase; }
      #status { text-align: center; margin: 1.25rem 0; min-height: 1.5rem; color: var(--muted); }
      #grid {
        display: grid;
        gap: 2px;
        padding: 2px;
        background: #cbd5e1;
        border-radius: 0.5rem;
        aspect-ratio: 1 / 1;
      }
      #grid button {
        border: 0;
        background: white;
        font-size: clamp(1.2rem, 6vw, 3rem);
        font-weight: 800;
        cursor: pointer;
      }
      #grid button:disabled { cursor: default; }
      #grid button.last { background: #fefce8; }
      .X { color: var(--x); }
      .O { color: var(--o); }
      .hidden { display: none !important; }
      #result { text-align: center; margin-top: 1.25rem; }
      #result .row button { flex: 1; }
    </style>
  </head>
  <body>
    <section id=\"setup\" class=\"card\">
      <h1>GridXO</h1>
      <p class=\"subtitle\">Configure your battleground</p>
      <label for=\"size\">Grid size (N x N)</label>
      <div class=\"row\">
        <input id=\"size\" type=\"range\" min=\"3\" max=\"6\" step=\"1\" value=\"3\" style=\"flex: 1\" />
        <strong id=\"size-label\">3</strong>
      </div>
      <label for=\"name\">Your name</label>
      <input id=\"name\" type=\"text\" value=\"Player 1\" maxlength=\"40\" />
      <label>Mode</label>
      <div class=\"row toggle\" id=\"mode\">
        <button type=\"button\" data-value=\"pvai\" class=\"selected\">vs AI</button>
        <button type=\"button\" data-value=\"pvp\">2 Player</button>
      </div>
      <label>Choose side</label>
      <div class=\"row toggle\" id=\"symbol\">
        <button type=\"button\" data-value=\"X\" class=\"selected\">Play as X</button>
        <button type=\"button\" data-value=\"O\">Play as O</button>
      </div>
      <button id=\"start\" class=\"primary\" type=\"button\">Start Game</button>
    </section>

    <section id=\"game\" class=\"card hidden\">
      <div class=\"header\">
        <button id=\"menu\" type=\"button\">&larr; Menu</button>
        <div class=\"players\">
          <div class=\"player\" id=\"player-0\"><div class=\"symbol\"></div><div class=\"name\"></div></div>
          <div style=\"color: var(--muted)\">VS</div>
          <div class=\"player\" id=\"player-1\"><div class=\"symbol\"></div><div class=\"name\"></div></div>
        </div>
        <button id=\"restart\" type=\"button\">&#8635;</button>
      </div>
      <div id=\"status\"></div>
      <div id=\"grid\"></div>
      <div id=\"result\" class=\"hidden\">
        <h2 id=\"result-title\"></h2>
        <p id=\"result-detail\"></p>
        <div class=\"row\">
          <button id=\"result-menu\" type=\"button\" class=\"primary\" style=\"background: #64748b\">Menu</button>
          <button id=\"result-replay\" type=\"button\" class=\"primary\">Replay</button>
        </div>
      </div>
    </section>

    <script>
      const setup = document.getElementById('setup');
      const gameView = document.getElementById('game');
      const grid = document.getElementById('grid');
      const statusLine = document.getElementById('status');
      const sizeInput = document.getElementById('size');
      let gameId = null;
      let state = null;
      let pollTimer = null;

      function selectedValue(groupId) {
        return document.querySelector(`#${groupId} .selected`).dataset.value;
      }

      for (const groupId of ['mode', 'symbol']) {
        document.querySelectorAll(`#${groupId} button`).forEach((button) => {
          button.addEventListener('click', () => {
            document.querySelectorAll(`#${groupId} button`).forEach((b) => b.classList.remove('selected'));
            button.classList.add('selected');
          });
        });
      }
      sizeInput.addEventListener('input', () => {
        document.getElementById('size-label').textContent = sizeInput.value;
      });

      async function api(path, options = {}) {
        const response = await fetch(path, {
          headers: { 'Content-Type': 'application/json' },
          ...options,
        });
        if (response.status === 204) return null;
        const payload = await response.json();
        if (!response.ok) throw new Error(JSON.stringify(payload.detail));
        return payload;
      }

      async function startGame() {
        const body = {
          size: parseInt(sizeInput.value, 10),
          playerName: document.getElementById('name').value || 'Player 1',
          playerSymbol: selectedValue('symbol'),
          mode: selectedValue('mode'),
        };
        await leaveGame();
        render(await api('/api/game', { method: 'POST', body: JSON.stringify(body) }));
        setup.classList.add('hidden');
        gameView.classList.remove('hidden');
      }

      async function leaveGame() {
        clearTimeout(pollTimer);
        if (gameId) {
          await api(`/api/game/${gameId}`, { method: 'DELETE' });
          gameId = null;
        }
      }

      async function showMenu() {
        await leaveGame();
        gameView.classList.add('hidden');
        setup.classList.remove('hidden');
      }

      async function replay() {
        clearTimeout(pollTimer);
        render(await api(`/api/game/${gameId}/replay`, { method: 'POST' }));
      }

      async function selectCell(index) {
        render(await api(`/api/game/${gameId}/move`, {
          method: 'POST',
          body: JSON.stringify({ cellIndex: index }),
        }));
      }

      async function poll() {
        if (!gameId) return;
        render(await api(`/api/game/${gameId}`));
      }

      function render(next) {
        state = next;
        gameId = next.id;
        const current = next.currentPlayer;
        const playing = next.status === 'in_progress';
        const blocked = !playing || current.kind === 'ai' || next.thinking;

        next.players.forEach((player, i) => {
          const el = document.getElementById(`player-${i}`);
          el.querySelector('.symbol').textContent = player.symbol;
          el.querySelector('.symbol').className = `symbol ${player.symbol}`;
          el.querySelector('.name').textContent = player.name;
          el.classList.toggle('active', playing && next.turn === i);
        });

        grid.style.gridTemplateColumns = `repeat(${next.size}, minmax(0, 1fr))`;
        grid.innerHTML = '';
        next.board.forEach((cell, index) => {
          const button = document.createElement('button');
          button.type = 'button';
          button.textContent = cell || '';
          if (cell) button.classList.add(cell);
          if (next.lastMove === index) button.classList.add('last');
          button.disabled = cell !== null || blocked;
          button.addEventListener('click', () => selectCell(index));
          grid.appendChild(button);
        });

        const result = document.getElementById('result');
        if (playing) {
          statusLine.textContent = current.kind === 'ai'
            ? 'AI is thinking...'
            : `Waiting for ${current.name}...`;
          result.classList.add('hidden');
        } else {
          const winner = next.winner;
          const title = next.status === 'drawn'
            ? 'Draw!'
            : (winner.kind === 'ai' ? 'Defeat!' : 'Victory!');
          statusLine.textContent = title;
          document.getElementById('result-title').textContent = title;
          document.getElementById('result-detail').textContent = next.status === 'drawn'
            ? 'No more moves left.'
            : `${winner.name} wins!`;
          result.classList.remove('hidden');
        }

        clearTimeout(pollTimer);
        if (playing && (next.thinking || current.kind === 'ai')) {
          pollTimer = setTimeout(poll, 300);
        }
      }

      document.getElementById('start').addEventListener('click', startGame);
      document.getElementById('menu').addEventListener('click', showMenu);
      document.getElementById('result-menu').addEventListener('click', showMenu);
      document.getElementById('restart').addEventListener('click', replay);
      document.getElementById('result-replay').addEventListener('click', replay);
    </script>
  </body>
</html>
"""
